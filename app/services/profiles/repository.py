"""Caller profile repository."""
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import yaml

from app.core.exceptions import ProfileNotFound
from app.services.profiles.models import CallerProfile

logger = logging.getLogger(__name__)

DEFAULT_PROFILES_FILE = Path(__file__).parent / "data" / "caller_profiles.yaml"


class CallerProfileRepository:
    """Read-only lookup of caller profiles keyed by the answered phone number."""

    def __init__(self, profiles: Iterable[CallerProfile] = ()):
        self._profiles: Dict[str, CallerProfile] = {
            profile.phone_number: profile for profile in profiles
        }

    @classmethod
    def from_yaml(cls, profiles_file: Optional[Union[str, Path]] = None) -> "CallerProfileRepository":
        """
        Load profiles from a YAML file.

        The file maps phone numbers to ``system_prompt`` and optional
        ``tools``::

            profiles:
              "+18005550100":
                system_prompt: ...
                tools: [...]
        """
        path = Path(profiles_file) if profiles_file else DEFAULT_PROFILES_FILE
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        profiles = [
            CallerProfile(phone_number=str(number), **(entry or {}))
            for number, entry in (data.get("profiles") or {}).items()
        ]
        logger.info(f"[PROFILES] Loaded {len(profiles)} caller profiles from {path}")
        return cls(profiles)

    def get_profile(self, phone_number: Optional[str]) -> CallerProfile:
        """
        Get the profile for a phone number.

        Raises:
            ProfileNotFound: no profile is configured for the number.
        """
        profile = self._profiles.get(phone_number or "")
        if profile is None:
            raise ProfileNotFound(phone_number or "")
        return profile

    def phone_numbers(self) -> List[str]:
        return sorted(self._profiles)
