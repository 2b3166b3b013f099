"""Actor providers consulted before an import starts."""

from __future__ import annotations

import os

from .config import ACTOR_ENV_VAR
from .models import Actor


class StaticSession:
    """Always returns the same actor (or none)."""

    def __init__(self, actor: Actor | None):
        self.actor = actor

    def get_current_actor(self) -> Actor | None:
        return self.actor


class EnvSession:
    """Reads the actor id from the environment on every call."""

    def __init__(self, env_var: str = ACTOR_ENV_VAR):
        self.env_var = env_var

    def get_current_actor(self) -> Actor | None:
        actor_id = os.environ.get(self.env_var, "").strip()
        if not actor_id:
            return None
        return Actor(actor_id=actor_id)
