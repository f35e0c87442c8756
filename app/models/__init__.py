from app.models.catalog import (  # noqa: F401
    NasDevice,
    NasDeviceStatus,
    NasType,
    Plan,
    PlanStatus,
    SpeedUnit,
    ValidityUnit,
)
from app.models.notification import (  # noqa: F401
    NotificationStatus,
    NotificationType,
    SubscriberNotification,
)
from app.models.radius import (  # noqa: F401
    Nas,
    RadAcct,
    RadCheck,
    RadGroupCheck,
    RadGroupReply,
    RadiusSyncOutbox,
    RadiusSyncStatus,
    RadReply,
    RadUserGroup,
)
from app.models.subscriber import Subscriber, SubscriberStatus  # noqa: F401
from app.models.tenant import Tenant, TenantStatus  # noqa: F401
