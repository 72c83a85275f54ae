"""
pricing_calculator.py — CPM and margin breakdown for a job

Pure functions: no I/O except get_pricing_rule(), which may read a
PricingRule row when given a session.

Business Rules:
- Producer is paid print CPM; Intermediary bills print + paper charged CPM
  (the cost floor)
- Margin above the cost floor is split 50/50 between Broker and
  Intermediary; the odd cent goes to the Intermediary
- Totals are rounded to cents first, margins are derived by subtraction so
  customer = broker margin + intermediary, intermediary = its margin + producer
- A custom price below the cost floor clamps the split margin to zero and
  reports the shortfall as loss_amount (broker margin goes negative by it)
- Any custom price below the standard price requires approval

Called by: services/settlement_orchestrator.py, services/job_service.py,
           routers/pricing.py
Depends on: models.PricingRule (optional DB overrides)
"""

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

from ..exceptions import ValidationError

CENT = Decimal("0.01")
CPM_PLACES = Decimal("0.0001")
THOUSAND = Decimal(1000)


def to_money(value) -> Decimal:
    """Quantize anything numeric to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _cpm(total: Decimal, quantity: int) -> Decimal:
    return (total * THOUSAND / Decimal(quantity)).quantize(CPM_PLACES, rounding=ROUND_HALF_UP)


# ── Rate table ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class RateCard:
    size_id: str
    name: str
    paper_type: str
    print_cpm: Decimal
    paper_charged_cpm: Decimal
    paper_cost_cpm: Decimal
    customer_cpm: Decimal
    paper_weight_per_1000: Decimal
    paper_cost_per_lb: Decimal = Decimal("0.675")

    @property
    def base_cost_cpm(self) -> Decimal:
        return self.print_cpm + self.paper_charged_cpm


def _card(size_id, name, print_cpm, paper_charged, paper_cost, customer, weight, paper="Coated Matte 7pt (98# Stock)"):
    return RateCard(
        size_id=size_id,
        name=name,
        paper_type=paper,
        print_cpm=Decimal(print_cpm),
        paper_charged_cpm=Decimal(paper_charged),
        paper_cost_cpm=Decimal(paper_cost),
        customer_cpm=Decimal(customer),
        paper_weight_per_1000=Decimal(weight),
    )


PRODUCT_SIZES: dict[str, RateCard] = {
    c.size_id: c
    for c in (
        _card("SM_7_25_16_375", "7 1/4 x 16 3/8", "34.74", "18.55", "15.4575", "67.56", "22.9"),
        _card("SM_8_5_17_5", "8 1/2 x 17 1/2", "38.41", "24.43", "20.358", "81.00", "30.16"),
        _card("SM_9_75_22_125", "9 3/4 x 22 1/8", "49.18", "42.91", "35.7615", "106.91", "52.98"),
        _card("SM_9_75_26", "9 3/4 x 26", "49.18", "48.60", "36.639", "112.60", "54.28"),
        _card("PC_6_9", "6 x 9 Postcard", "10.00", "15.55", "13.5", "35.00", "20", paper="100# Gloss Cover"),
        _card("PC_6_11", "6 x 11 Postcard", "12.00", "18.89", "16.2", "39.00", "24", paper="100# Gloss Cover"),
    )
}


def get_pricing_rule(size_id: str, db=None) -> RateCard:
    """Active DB rule for the size if any, else the built-in card.

    Raises ValidationError for an unknown size.
    """
    if db is not None:
        from ..models import PricingRule

        rule = db.query(PricingRule).filter_by(size_id=size_id, is_active=True).first()
        if rule:
            builtin = PRODUCT_SIZES.get(size_id)
            return RateCard(
                size_id=rule.size_id,
                name=rule.name or (builtin.name if builtin else rule.size_id),
                paper_type=rule.paper_type or (builtin.paper_type if builtin else ""),
                print_cpm=Decimal(str(rule.print_cpm)),
                paper_charged_cpm=Decimal(str(rule.paper_charged_cpm)),
                paper_cost_cpm=Decimal(str(rule.paper_cost_cpm)),
                customer_cpm=Decimal(str(rule.customer_cpm)),
                paper_weight_per_1000=Decimal(str(rule.paper_weight_per_1000 or 0)),
                paper_cost_per_lb=Decimal(str(rule.paper_cost_per_lb or "0.675")),
            )
    card = PRODUCT_SIZES.get(size_id)
    if card is None:
        raise ValidationError(f"Unknown size '{size_id}'", size_id=size_id)
    return card


# ── Breakdown ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class PricingBreakdown:
    size_id: str | None
    quantity: int
    customer_cpm: Decimal
    customer_total: Decimal
    intermediary_cpm: Decimal
    intermediary_total: Decimal
    intermediary_margin_cpm: Decimal
    intermediary_margin: Decimal
    producer_cpm: Decimal
    producer_total: Decimal
    broker_margin_cpm: Decimal
    broker_margin: Decimal
    paper_cost_cpm: Decimal
    paper_cost_total: Decimal
    paper_charged_cpm: Decimal
    paper_charged_total: Decimal
    paper_markup: Decimal
    paper_weight_lbs: Decimal
    standard_customer_total: Decimal
    undercharge_amount: Decimal
    is_loss: bool
    loss_amount: Decimal
    requires_approval: bool

    def to_dict(self) -> dict:
        return {k: (str(v) if isinstance(v, Decimal) else v) for k, v in asdict(self).items()}

    def job_fields(self) -> dict:
        """Column values to copy onto a Job."""
        return {
            "customer_cpm": self.customer_cpm,
            "customer_total": self.customer_total,
            "intermediary_cpm": self.intermediary_cpm,
            "intermediary_total": self.intermediary_total,
            "intermediary_margin": self.intermediary_margin,
            "producer_cpm": self.producer_cpm,
            "producer_total": self.producer_total,
            "broker_margin": self.broker_margin,
            "paper_cost_cpm": self.paper_cost_cpm,
            "paper_cost_total": self.paper_cost_total,
            "paper_charged_cpm": self.paper_charged_cpm,
            "paper_charged_total": self.paper_charged_total,
            "is_loss": self.is_loss,
            "loss_amount": self.loss_amount,
            "requires_approval": self.requires_approval,
        }


def _split(customer_total: Decimal, cost_floor: Decimal):
    """Return (intermediary_total, is_loss, loss_amount) for a cost floor."""
    if customer_total < cost_floor:
        return cost_floor, True, cost_floor - customer_total
    half = ((customer_total - cost_floor) / 2).quantize(CENT, rounding=ROUND_HALF_UP)
    return cost_floor + half, False, Decimal("0.00")


def calculate_pricing(
    size_id: str,
    quantity: int,
    custom_price=None,
    rule: RateCard | None = None,
) -> PricingBreakdown:
    """Full breakdown for a standard two-hop job.

    custom_price is the total the customer pays, overriding customer CPM.
    """
    if quantity is None or int(quantity) <= 0:
        raise ValidationError("Quantity must be positive", quantity=quantity)
    quantity = int(quantity)
    card = rule or get_pricing_rule(size_id)
    thousands = Decimal(quantity) / THOUSAND

    producer_total = to_money(card.print_cpm * thousands)
    paper_charged_total = to_money(card.paper_charged_cpm * thousands)
    paper_cost_total = to_money(card.paper_cost_cpm * thousands)
    cost_floor = producer_total + paper_charged_total

    standard_total = to_money(card.customer_cpm * thousands)
    if custom_price is not None:
        customer_total = to_money(custom_price)
        if customer_total <= 0:
            raise ValidationError("Custom price must be positive", custom_price=str(custom_price))
    else:
        customer_total = standard_total

    intermediary_total, is_loss, loss_amount = _split(customer_total, cost_floor)
    broker_margin = customer_total - intermediary_total
    intermediary_margin = intermediary_total - producer_total
    undercharge = max(standard_total - customer_total, Decimal("0.00"))

    return PricingBreakdown(
        size_id=card.size_id,
        quantity=quantity,
        customer_cpm=_cpm(customer_total, quantity),
        customer_total=customer_total,
        intermediary_cpm=_cpm(intermediary_total, quantity),
        intermediary_total=intermediary_total,
        intermediary_margin_cpm=_cpm(intermediary_margin, quantity),
        intermediary_margin=intermediary_margin,
        producer_cpm=_cpm(producer_total, quantity),
        producer_total=producer_total,
        broker_margin_cpm=_cpm(broker_margin, quantity),
        broker_margin=broker_margin,
        paper_cost_cpm=_cpm(paper_cost_total, quantity),
        paper_cost_total=paper_cost_total,
        paper_charged_cpm=_cpm(paper_charged_total, quantity),
        paper_charged_total=paper_charged_total,
        paper_markup=paper_charged_total - paper_cost_total,
        paper_weight_lbs=(card.paper_weight_per_1000 * thousands).quantize(CENT, rounding=ROUND_HALF_UP),
        standard_customer_total=standard_total,
        undercharge_amount=undercharge,
        is_loss=is_loss,
        loss_amount=loss_amount,
        requires_approval=is_loss or undercharge > 0,
    )


def calculate_vendor_pricing(customer_total, vendor_amount, intermediary_cut, quantity: int) -> PricingBreakdown:
    """Breakdown for a third-party vendor job.

    The vendor takes the producer position at its quoted amount and the
    intermediary earns a fixed cut instead of a share of the margin.
    """
    if quantity is None or int(quantity) <= 0:
        raise ValidationError("Quantity must be positive", quantity=quantity)
    quantity = int(quantity)
    customer_total = to_money(customer_total)
    producer_total = to_money(vendor_amount)
    cut = to_money(intermediary_cut or 0)
    if producer_total < 0 or cut < 0:
        raise ValidationError("Vendor amount and intermediary cut must be non-negative")

    intermediary_total = producer_total + cut
    is_loss = customer_total < intermediary_total
    loss_amount = intermediary_total - customer_total if is_loss else Decimal("0.00")
    broker_margin = customer_total - intermediary_total
    zero = Decimal("0.00")

    return PricingBreakdown(
        size_id=None,
        quantity=quantity,
        customer_cpm=_cpm(customer_total, quantity),
        customer_total=customer_total,
        intermediary_cpm=_cpm(intermediary_total, quantity),
        intermediary_total=intermediary_total,
        intermediary_margin_cpm=_cpm(cut, quantity),
        intermediary_margin=cut,
        producer_cpm=_cpm(producer_total, quantity),
        producer_total=producer_total,
        broker_margin_cpm=_cpm(broker_margin, quantity),
        broker_margin=broker_margin,
        paper_cost_cpm=Decimal("0.0000"),
        paper_cost_total=zero,
        paper_charged_cpm=Decimal("0.0000"),
        paper_charged_total=zero,
        paper_markup=zero,
        paper_weight_lbs=zero,
        standard_customer_total=customer_total,
        undercharge_amount=zero,
        is_loss=is_loss,
        loss_amount=loss_amount,
        requires_approval=is_loss,
    )
