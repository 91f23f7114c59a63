"""Works out whether this host is a Delivery Controller or a VDA, and its site name."""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .models import QueryFailureKind, QueryResult, RecordRead, ResolutionStep, SiteIdentity

logger = logging.getLogger("scout.resolver")


class IdentityResolver:
    """Prioritized fallback chain for the host's site identity.

    0. Local read access unusable          -> Unknown / "Unable to determine"
    1. Get-BrokerSite against this host    -> Controller / <site>
    2. ListOfDDCs, first non-blank entry   -> step 3, else step 4
    3. Get-BrokerSite against the candidate -> Agent / <site>, else Agent / "VDA"
    4. Mirrored registration address       -> step 3, else Agent / "VDA"

    Only one candidate controller is ever queried and nothing is retried.
    The resolver keeps no state between calls.
    """

    def __init__(self, site_client, config_store):
        self.site_client = site_client
        self.config_store = config_store

    def resolve(self) -> SiteIdentity:
        identity, _ = self.resolve_with_trace()
        return identity

    def resolve_with_trace(self) -> Tuple[SiteIdentity, List[ResolutionStep]]:
        trace: List[ResolutionStep] = []

        access_failure = self.site_client.check_local_access()
        if access_failure is not None:
            trace.append(
                ResolutionStep(0, "check_local_access", "failed", {"message": access_failure.message})
            )
            logger.warning("Local access unavailable (%s); role cannot be determined", access_failure.message)
            return SiteIdentity.unknown(), trace
        trace.append(ResolutionStep(0, "check_local_access", "ok"))

        local = self.site_client.query(None)
        trace.append(self._query_step(1, local, None))
        if local.ok:
            logger.info("Host is a Delivery Controller of site %r", local.site_name)
            return SiteIdentity.controller(local.site_name.strip()), trace

        logger.info("Host is not a Delivery Controller; checking VDA registration")

        direct = self.config_store.read_direct_registration()
        if direct.access_failure is not None:
            trace.append(self._access_failure_step(2, "read_direct_registration", direct))
            return SiteIdentity.unknown(), trace

        candidate: Optional[str] = direct.record.first_candidate() if direct.found else None
        if candidate:
            trace.append(
                ResolutionStep(2, "read_direct_registration", "candidate", {"address": candidate})
            )
            return self._query_candidate(candidate, trace), trace
        trace.append(
            ResolutionStep(2, "read_direct_registration", "empty" if direct.found else "absent")
        )

        mirrored = self.config_store.read_mirrored_registration()
        if mirrored.access_failure is not None:
            trace.append(self._access_failure_step(4, "read_mirrored_registration", mirrored))
            return SiteIdentity.unknown(), trace

        candidate = mirrored.record.candidate() if mirrored.found else None
        if not candidate:
            trace.append(
                ResolutionStep(4, "read_mirrored_registration", "empty" if mirrored.found else "absent")
            )
            logger.info("No controller address recorded on this VDA")
            return SiteIdentity.agent(), trace
        trace.append(
            ResolutionStep(4, "read_mirrored_registration", "candidate", {"address": candidate})
        )
        return self._query_candidate(candidate, trace), trace

    def _query_candidate(self, address: str, trace: List[ResolutionStep]) -> SiteIdentity:
        result = self.site_client.query(address)
        trace.append(self._query_step(3, result, address))
        if result.ok:
            logger.info("Controller %s reports site %r", address, result.site_name)
            return SiteIdentity.agent(result.site_name.strip())
        logger.info("Controller %s did not report a site", address)
        return SiteIdentity.agent()

    @staticmethod
    def _query_step(step: int, result: QueryResult, address: Optional[str]) -> ResolutionStep:
        detail = {"address": address} if address else {}
        if result.ok:
            detail["site_name"] = result.site_name
            return ResolutionStep(step, "query_site", "ok", detail)
        if result.failure is None:
            detail["failure"] = QueryFailureKind.NO_SITE.value
            detail["message"] = "no site reported"
        else:
            detail["failure"] = result.failure.kind.value
            detail["message"] = result.failure.message
        return ResolutionStep(step, "query_site", "failed", detail)

    @staticmethod
    def _access_failure_step(step: int, action: str, read: RecordRead) -> ResolutionStep:
        failure = read.access_failure
        logger.warning("Cannot read %s: %s", failure.location, failure.message)
        return ResolutionStep(
            step, action, "access_failed", {"location": failure.location, "message": failure.message}
        )
