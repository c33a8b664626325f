"""Domain modules package."""

from lingobook.modules.billing import models as billing_models  # noqa: F401
from lingobook.modules.catalog import models as catalog_models  # noqa: F401
from lingobook.modules.identity import models as identity_models  # noqa: F401
from lingobook.modules.jobs import models as jobs_models  # noqa: F401
from lingobook.modules.leads import models as leads_models  # noqa: F401
from lingobook.modules.lessons import models as lessons_models  # noqa: F401
from lingobook.modules.scheduling import models as scheduling_models  # noqa: F401
from lingobook.modules.tenants import models as tenants_models  # noqa: F401
from lingobook.modules.webhooks import models as webhooks_models  # noqa: F401
