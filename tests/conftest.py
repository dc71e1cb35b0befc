from fixtures.env import env  # noqa: F401
from fixtures.userdata import (  # noqa: F401
    initdata_meta,
    provider_config,
    provision_config,
    trusted_root,
)
