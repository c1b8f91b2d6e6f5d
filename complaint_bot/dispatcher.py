"""
Fan-out delivery of complaints and broadcasts.

Every outbound send for one logical operation goes through here so partial
failures are collected in one place. Targets are served concurrently; within
a target the text card goes first and each media item follows in order. One
failing send never stops the others.
"""

import asyncio
import html
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .errors import DeliveryError
from .events import Transport
from .i18n import PRIMARY_LANGUAGE, t
from .models import Complaint, as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryFailure:
    target: str
    item: str


def failed_targets(failures: Iterable[DeliveryFailure]) -> List[str]:
    """Distinct targets in first-failure order."""
    seen: List[str] = []
    for failure in failures:
        if failure.target not in seen:
            seen.append(failure.target)
    return seen


def format_complaint_card(complaint: Complaint, language: str = PRIMARY_LANGUAGE) -> str:
    """HTML card sent to administrators and the staff group."""
    national_id_line = ""
    if complaint.national_id:
        national_id_line = t(language, "nationalIdLine", national_id=html.escape(complaint.national_id))
    media_count = (
        t(language, "mediaCount", count=len(complaint.media))
        if complaint.media
        else t(language, "mediaNone")
    )
    created_at = as_utc(complaint.created_at)
    return t(
        language,
        "complaintCard",
        complaint_id=html.escape(complaint.id),
        full_name=html.escape(complaint.full_name),
        handle=html.escape(complaint.submitter_handle or t(language, "unknownHandle")),
        address=html.escape(complaint.address),
        phone=html.escape(complaint.phone),
        national_id_line=national_id_line,
        section=html.escape(complaint.section),
        summary=html.escape(complaint.summary),
        created_at=created_at.strftime("%Y-%m-%d %H:%M UTC") if created_at else "",
        media_count=media_count,
    )


class DeliveryDispatcher:
    def __init__(self, transport: Transport, admin_ids: Iterable[str], group_id: str):
        self.transport = transport
        self.admin_ids = list(dict.fromkeys(admin_ids))
        self.group_id = group_id

    @property
    def staff_targets(self) -> List[str]:
        """Administrators followed by the staff group, without duplicates."""
        return list(dict.fromkeys([*self.admin_ids, self.group_id]))

    async def _attempt(self, target: str, item: str, send) -> Optional[DeliveryFailure]:
        try:
            await send
        except DeliveryError as exc:
            logger.warning("Delivery of %s to %s failed: %s", item, target, exc.reason or exc)
            return DeliveryFailure(target, item)
        except Exception:
            logger.exception("Unexpected error delivering %s to %s", item, target)
            return DeliveryFailure(target, item)
        return None

    async def _deliver_to_target(self, target: str, complaint: Complaint, card: str) -> List[DeliveryFailure]:
        failures: List[DeliveryFailure] = []
        failure = await self._attempt(target, "text", self.transport.send_text(target, card, html=True))
        if failure:
            failures.append(failure)
        caption = f"#{complaint.id}"
        for index, media in enumerate(complaint.media or []):
            kind = media.get("kind")
            ref = media.get("ref")
            item = f"{kind}:{index + 1}"
            if kind == "photo":
                send = self.transport.send_photo(target, ref, caption=caption)
            elif kind == "video":
                send = self.transport.send_video(target, ref, caption=caption)
            else:
                logger.warning("Skipping unknown media kind %r on complaint %s", kind, complaint.id)
                continue
            failure = await self._attempt(target, item, send)
            if failure:
                failures.append(failure)
        return failures

    async def deliver_complaint(self, complaint: Complaint) -> List[DeliveryFailure]:
        """Send the complaint card and its media to every staff target."""
        card = format_complaint_card(complaint)
        targets = self.staff_targets
        results = await asyncio.gather(
            *(self._deliver_to_target(target, complaint, card) for target in targets)
        )
        failures = [failure for per_target in results for failure in per_target]
        if failures:
            logger.warning(
                "Complaint %s delivered with %d failed sends (targets: %s)",
                complaint.id,
                len(failures),
                ", ".join(failed_targets(failures)),
            )
        else:
            logger.info("Complaint %s delivered to %d targets", complaint.id, len(targets))
        return failures

    async def _fan_out_text(self, targets: Sequence[str], text: str, html_mode: bool = False) -> List[str]:
        results = await asyncio.gather(
            *(
                self._attempt(target, "text", self.transport.send_text(target, text, html=html_mode))
                for target in targets
            )
        )
        return [failure.target for failure in results if failure]

    async def broadcast(self, message: str, recipients: Iterable[str]) -> List[str]:
        """Send `message` to every recipient and the staff group.

        Returns the unreachable targets.
        """
        targets = list(dict.fromkeys([*recipients, self.group_id]))
        text = t(PRIMARY_LANGUAGE, "broadcastMessage", message=message)
        failed = await self._fan_out_text(targets, text)
        logger.info("Broadcast sent to %d targets, %d failed", len(targets), len(failed))
        return failed

    async def notify_admins(self, text: str, html_mode: bool = False) -> List[str]:
        return await self._fan_out_text(self.admin_ids, text, html_mode)

    async def send_to(self, target: str, text: str, **kwargs) -> bool:
        """Send one message. Returns False instead of raising on failure."""
        failure = await self._attempt(target, "text", self.transport.send_text(target, text, **kwargs))
        return failure is None
