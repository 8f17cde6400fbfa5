"""
Fixed asset posting service (``ledger_modules.assets.service``).

Posts the disposal of an asset.  Depreciation is posted by the batch job in
``ledger_services.depreciation_service``.

Disposal entry:

    Cr Fixed Assets 1500             purchase price
    Dr Accumulated Depreciation 1510 accumulated depreciation (if any)
    Dr Cash 1100                     proceeds (if any)
    Cr Gain on Disposal 4200         proceeds above book value, or
    Dr Loss on Disposal 6200         book value not recovered
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_config.schema import PostingPolicy
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import CallerIdentity, LineDescriptor
from ledger_kernel.domain.money import ZERO, as_decimal
from ledger_kernel.exceptions import AssetNotDisposedError
from ledger_kernel.logging_config import get_logger
from ledger_modules._posting import ModulePoster
from ledger_modules.assets.helpers import disposal_gain_loss
from ledger_modules.assets.orm import AssetModel, AssetStatus

logger = get_logger("modules.assets.service")

ASSET_DISPOSAL_DOC_TYPE = "asset_disposal"


class AssetPostingService:
    """Disposes assets and posts the disposal entry."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: PostingPolicy | None = None,
    ):
        self._session = session
        self._poster = ModulePoster(session, clock, policy)

    def dispose(
        self,
        caller: CallerIdentity,
        asset: AssetModel,
        disposal_price: Decimal | None = None,
        disposal_date: date | None = None,
    ) -> UUID:
        asset.status = AssetStatus.DISPOSED.value
        asset.disposal_price = disposal_price
        asset.disposal_date = disposal_date or self._poster.clock.today()
        asset.updated_by_id = caller.actor_id
        self._session.flush()
        return self.post_asset_disposal(caller, asset)

    def post_asset_disposal(self, caller: CallerIdentity, asset: AssetModel) -> UUID:
        if asset.status != AssetStatus.DISPOSED.value:
            logger.warning(
                "asset_disposal_rejected",
                extra={"asset_id": str(asset.id), "status": asset.status},
            )
            raise AssetNotDisposedError(str(asset.id), asset.status)

        codes = self._poster.codes
        tenant_id = asset.tenant_id
        cost = as_decimal(asset.purchase_price)
        accumulated = as_decimal(asset.accumulated_depreciation)
        proceeds = as_decimal(asset.disposal_price)
        gain_loss = disposal_gain_loss(cost, accumulated, proceeds)
        tag = asset.asset_tag

        lines = [
            LineDescriptor.cr(
                self._poster.account_id(tenant_id, codes.fixed_asset), cost,
                f"Remove: {asset.name} ({tag})", asset_id=asset.id,
            ),
        ]
        if accumulated > ZERO:
            lines.append(LineDescriptor.dr(
                self._poster.account_id(tenant_id, codes.accumulated_depreciation), accumulated,
                f"Accum depr reversal: {tag}", asset_id=asset.id,
            ))
        if proceeds > ZERO:
            lines.append(LineDescriptor.dr(
                self._poster.account_id(tenant_id, codes.cash), proceeds,
                f"Disposal proceeds: {tag}", asset_id=asset.id,
            ))
        if gain_loss > ZERO:
            lines.append(LineDescriptor.cr(
                self._poster.account_id(tenant_id, codes.gain_on_disposal), gain_loss,
                f"Gain on disposal: {tag}", asset_id=asset.id,
            ))
        elif gain_loss < ZERO:
            lines.append(LineDescriptor.dr(
                self._poster.account_id(tenant_id, codes.loss_on_disposal), -gain_loss,
                f"Loss on disposal: {tag}", asset_id=asset.id,
            ))

        result = self._poster.post(
            caller,
            tenant_id,
            ASSET_DISPOSAL_DOC_TYPE,
            asset.id,
            asset.disposal_date or self._poster.clock.today(),
            f"Asset disposed: {asset.name} ({tag})",
            lines,
        )
        logger.info(
            "asset_disposal_posted",
            extra={
                "asset_id": str(asset.id),
                "entry_id": str(result.entry_id),
                "gain_loss": str(gain_loss),
                "idempotent": result.idempotent,
            },
        )
        return result.entry_id
