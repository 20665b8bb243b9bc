"""Pydantic models for the router's HTTP surface.

Amounts travel as decimal strings so that 256-bit values survive JSON.
Range checks on options are left to RouterConfig, which reports them as
InvalidConfig.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from dexrouter.config import OptimizeOptions
from dexrouter.models.types import Address, Uint256
from dexrouter.routing.plan import Approval, ExecutionPlan, SplitLeg, Step


class OptimizeOptionsModel(BaseModel):
    """Per-request routing options."""

    slippage: Decimal | None = Field(
        default=None, description="Tolerated output shortfall, 0..1 (default 0.005)"
    )
    max_hops: int | None = Field(default=None, alias="maxHops")
    use_venue_u: bool | None = Field(default=None, alias="useVenueU")
    use_venue_b: bool | None = Field(default=None, alias="useVenueB")
    bridge_set: list[Address] | None = Field(default=None, alias="bridgeSet")
    liquidity_floor: Decimal | None = Field(default=None, alias="liquidityFloor")
    max_candidates: int | None = Field(default=None, alias="maxCandidates")

    model_config = {"populate_by_name": True}

    def to_options(self) -> OptimizeOptions:
        return OptimizeOptions(
            slippage=self.slippage,
            max_hops=self.max_hops,
            use_venue_u=self.use_venue_u,
            use_venue_b=self.use_venue_b,
            bridge_set=tuple(self.bridge_set) if self.bridge_set is not None else None,
            liquidity_floor=self.liquidity_floor,
            max_candidates=self.max_candidates,
        )


class OptimizeRequest(BaseModel):
    """Exact-input swap request."""

    token_in: Address = Field(alias="tokenIn", description="Input token (0x0..0 for native)")
    token_out: Address = Field(alias="tokenOut")
    amount_in: Uint256 = Field(alias="amountIn", description="Raw input amount")
    options: OptimizeOptionsModel | None = None
    decimals: dict[Address, int] | None = Field(
        default=None, description="Known token decimals, by address"
    )

    model_config = {"populate_by_name": True}


class StepModel(BaseModel):
    """One execution step."""

    venue: str
    method: str
    pools: list[str]
    tokens: list[Address]
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    amount_in: Uint256 = Field(alias="amountIn")
    expected_amount_out: Uint256 = Field(alias="expectedAmountOut")
    min_amount_out: Uint256 = Field(alias="minAmountOut")
    split_index: int = Field(alias="splitIndex")
    split_total: int = Field(alias="splitTotal")
    use_all_balance: bool = Field(alias="useAllBalance")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_step(cls, step: Step) -> StepModel:
        return cls(
            venue=step.venue.value,
            method=step.method.value,
            pools=list(step.pools),
            tokens=list(step.tokens),
            token_in=step.token_in,
            token_out=step.token_out,
            amount_in=str(step.amount_in),
            expected_amount_out=str(step.expected_amount_out),
            min_amount_out=str(step.min_amount_out),
            split_index=step.split_index,
            split_total=step.split_total,
            use_all_balance=step.use_all_balance,
        )


class ApprovalModel(BaseModel):
    """Token allowance required before execution."""

    token: Address
    spender: Address
    amount: Uint256

    @classmethod
    def from_approval(cls, approval: Approval) -> ApprovalModel:
        return cls(token=approval.token, spender=approval.spender, amount=str(approval.amount))


class SplitLegModel(BaseModel):
    """One leg of the chosen distribution."""

    route: str
    pools: list[str]
    venue_tag: str = Field(alias="venueTag")
    fraction: str = Field(description="Share of the input as a decimal string")
    amount_in: Uint256 = Field(alias="amountIn")
    amount_out: Uint256 = Field(alias="amountOut")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_leg(cls, leg: SplitLeg) -> SplitLegModel:
        fraction = Decimal(leg.fraction.numerator) / Decimal(leg.fraction.denominator)
        return cls(
            route=leg.route,
            pools=list(leg.pools),
            venue_tag=leg.venue_tag,
            fraction=str(fraction.quantize(Decimal("1e-9"))),
            amount_in=str(leg.amount_in),
            amount_out=str(leg.amount_out),
        )


class ExecutionPlanResponse(BaseModel):
    """Execution plan as returned to HTTP callers."""

    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    amount_in: Uint256 = Field(alias="amountIn")
    steps: list[StepModel]
    approvals: list[ApprovalModel]
    expected_output: Uint256 = Field(alias="expectedOutput")
    min_output: Uint256 = Field(alias="minOutput")
    total_gas_estimate: int = Field(alias="totalGasEstimate")
    gas_cost: Uint256 = Field(alias="gasCost")
    splits: list[SplitLegModel]
    wrap_operation: int = Field(alias="wrapOperation")
    requires_wrap: bool = Field(alias="requiresWrap")
    requires_unwrap: bool = Field(alias="requiresUnwrap")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_plan(cls, plan: ExecutionPlan) -> ExecutionPlanResponse:
        return cls(
            token_in=plan.token_in,
            token_out=plan.token_out,
            amount_in=str(plan.amount_in),
            steps=[StepModel.from_step(s) for s in plan.steps],
            approvals=[ApprovalModel.from_approval(a) for a in plan.approvals],
            expected_output=str(plan.expected_output),
            min_output=str(plan.min_output),
            total_gas_estimate=plan.total_gas_estimate,
            gas_cost=str(plan.gas_cost),
            splits=[SplitLegModel.from_leg(leg) for leg in plan.splits],
            wrap_operation=int(plan.wrap_operation),
            requires_wrap=plan.requires_wrap,
            requires_unwrap=plan.requires_unwrap,
        )


class ErrorResponse(BaseModel):
    """Terminal router error."""

    error: str
    detail: str
    retry_after: float | None = Field(default=None, alias="retryAfter")

    model_config = {"populate_by_name": True}
