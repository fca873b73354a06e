"""METADATA_PIN job handler."""

import structlog

from medialane.services.ipfs.pinata_client import PinataClient

logger = structlog.get_logger(__name__)


class MetadataPinHandler:
    """Pins IPFS-hosted token metadata so it stays available."""

    def __init__(self, pinata: PinataClient):
        self.pinata = pinata

    async def handle(self, payload: dict) -> None:
        cid = payload.get("cid")
        if not cid:
            logger.warning("metadata_pin.missing_cid", payload=payload)
            return

        await self.pinata.pin_by_cid(cid)
        logger.info("metadata_pin.pinned", cid=cid, url=self.pinata.get_gateway_url(cid))
