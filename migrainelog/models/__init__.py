# models package init
# Ensure ORM models are importable from a single place.
from migrainelog.models.episode import Episode  # noqa: F401
from migrainelog.models.push_subscription import PushSubscription  # noqa: F401
