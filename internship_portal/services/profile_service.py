"""
Profile Service - resolve and create student profiles.

Profiles live under (track, uid), and the track is not known when a user
signs in. Resolution goes through the profile directory (uid -> track). For
profiles written before the directory existed, the configured tracks are
probed in order and the directory is backfilled on a hit.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from internship_portal.core.exceptions import ProfileNotFound, ProfileAlreadyExists, ValidationError
from internship_portal.services.mongo_service import ProfileStore

logger = logging.getLogger(__name__)


class ProfileService:

    def __init__(
        self,
        store: ProfileStore,
        tracks: List[str],
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.store = store
        self.tracks = list(tracks)
        self.clock = clock

    def find(self, uid: str) -> Optional[dict]:
        """Return the profile for uid, or None. Store failures propagate."""
        track = self.store.get_directory_track(uid)
        if track:
            profile = self.store.get(track, uid)
            if profile:
                return profile
            logger.warning("Directory points %s at %s but no profile is stored there", uid, track)

        for candidate in self.tracks:
            if candidate == track:
                continue
            profile = self.store.get(candidate, uid)
            if profile:
                logger.info("Backfilling profile directory for %s -> %s", uid, candidate)
                self.store.set_directory_track(uid, candidate)
                return profile
        return None

    def resolve(self, uid: str) -> dict:
        """Return the profile for uid or raise ProfileNotFound."""
        profile = self.find(uid)
        if profile is None:
            raise ProfileNotFound(uid)
        return profile

    def onboard(self, principal: dict, name: str, institution: str, track: str) -> dict:
        """
        Create the profile for a signed-in principal.

        Raises ValidationError for blank fields or an unknown track, and
        ProfileAlreadyExists if the principal already has a profile.
        """
        name = (name or "").strip()
        institution = (institution or "").strip()
        if not name or not institution:
            raise ValidationError("Name and institution are required")
        if track not in self.tracks:
            raise ValidationError(f"Unknown track '{track}'. Choose one of: {', '.join(self.tracks)}")

        uid = principal["uid"]
        if self.find(uid) is not None:
            raise ProfileAlreadyExists(uid)

        profile = {
            "uid": uid,
            "name": name,
            "institution": institution,
            "track": track,
            "email": principal.get("email", ""),
            "created_at": self.clock(),
        }
        if not self.store.insert(profile):
            raise ProfileAlreadyExists(uid)
        self.store.set_directory_track(uid, track)

        logger.info("Created profile for %s in %s", uid, track)
        return profile
