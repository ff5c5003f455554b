"""
FulfillmentService: hands paid print lines to the print partner.

Partner failures are recorded on the line only. The order's payment state,
amounts and entitlements are never touched from here, and no refund is issued.
"""
import logging

from sqlalchemy.orm import Session

from marketplace.ledger.errors import ConflictError, FulfillmentError, ValidationError
from marketplace.ledger.service import OrderLedger
from marketplace.models.enums import FulfillmentStatus, ItemType, OrderStatus
from marketplace.models.order import OrderLine
from marketplace.models.print_spec import PrintSpec
from marketplace.fulfillment.client import PrintJob, PrintPartnerClient
from marketplace.storage.base import AssetStore
from marketplace.storage.local import LocalAssetStore
from marketplace.utils.metrics import print_jobs_total

logger = logging.getLogger(__name__)

# A failed line may be retried; submitted/shipped lines are left alone.
SUBMITTABLE_STATUSES = frozenset({FulfillmentStatus.PENDING, FulfillmentStatus.FAILED})

# Statuses the partner may report back after submission.
PARTNER_REPORTED_STATUSES = frozenset({FulfillmentStatus.SHIPPED, FulfillmentStatus.FAILED})


class FulfillmentService:
    def __init__(
        self,
        db: Session,
        client: PrintPartnerClient | None = None,
        store: AssetStore | None = None,
    ):
        self.db = db
        self.ledger = OrderLedger(db)
        self.client = client or PrintPartnerClient()
        self.store = store or LocalAssetStore()

    def pending_print_lines(self, order_id: str) -> list[OrderLine]:
        return (
            self.db.query(OrderLine)
            .filter(
                OrderLine.order_id == order_id,
                OrderLine.item_type == ItemType.PRINT.value,
                OrderLine.fulfillment_status == FulfillmentStatus.PENDING.value,
            )
            .order_by(OrderLine.position)
            .all()
        )

    def submit_print_line(self, line_id: str) -> OrderLine:
        # Row lock: two workers must not both see the line as pending
        line = self.ledger.get_line(line_id, for_update=True)
        if line is None:
            raise ValidationError(f"Order line not found: {line_id}")
        if line.item_type != ItemType.PRINT:
            raise ValidationError(f"Order line {line_id} is not a print line")
        if line.order.status != OrderStatus.FULFILLED:
            raise ConflictError(
                f"Order {line.order_id} is {line.order.status}, print lines need a paid order",
                reason="order_not_fulfilled",
            )
        if FulfillmentStatus(line.fulfillment_status) not in SUBMITTABLE_STATUSES:
            logger.info(
                "print_line_already_submitted",
                extra={"line_id": line.id, "order_id": line.order_id, "from_status": line.fulfillment_status},
            )
            return line

        try:
            job = self._build_job(line)
            reference = self.client.submit_job(job)
        except FulfillmentError as e:
            print_jobs_total.labels(status="failed").inc()
            logger.warning(
                "print_job_failed",
                extra={"line_id": line.id, "order_id": line.order_id, "error": str(e)},
            )
            return self.ledger.record_fulfillment_result(line.id, FulfillmentStatus.FAILED, error=str(e))

        print_jobs_total.labels(status="submitted").inc()
        return self.ledger.record_fulfillment_result(line.id, FulfillmentStatus.SUBMITTED, reference=reference)

    def submit_order(self, order_id: str) -> list[OrderLine]:
        """Submit every pending print line of a fulfilled order."""
        return [self.submit_print_line(line.id) for line in self.pending_print_lines(order_id)]

    def apply_partner_update(
        self,
        reference: str,
        status: FulfillmentStatus,
        error: str | None = None,
    ) -> OrderLine:
        """Partner callback: a submitted job shipped or failed on their side."""
        if status not in PARTNER_REPORTED_STATUSES:
            raise ValidationError(f"Unsupported partner status: {status.value}")
        line = (
            self.db.query(OrderLine)
            .filter(OrderLine.fulfillment_reference == reference)
            .one_or_none()
        )
        if line is None:
            raise ValidationError(f"Unknown print job reference: {reference}")
        return self.ledger.record_fulfillment_result(line.id, status, error=error)

    def _build_job(self, line: OrderLine) -> PrintJob:
        asset = self.ledger.get_asset(line.asset_id)
        spec = self.db.query(PrintSpec).filter(PrintSpec.id == line.print_spec_id).one_or_none()
        if asset is None or spec is None:
            raise FulfillmentError(f"Catalog data missing for print line {line.id}")
        return PrintJob(
            order_id=line.order_id,
            line_id=line.id,
            asset_id=asset.id,
            asset_url=self.store.original_url(asset.storage_key),
            medium=spec.medium,
            width_inches=float(spec.width_inches),
            height_inches=float(spec.height_inches),
            quantity=line.quantity,
        )
