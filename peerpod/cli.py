import asyncio
import sys
from typing import Optional

import typer
from loguru import logger
from pydantic import ValidationError

from peerpod.config import ProviderConfig, ProvisionConfig
from peerpod.exceptions import ProvisionException
from peerpod.userdata.initdata import construct_initdata
from peerpod.userdata.provision import provision_files

app = typer.Typer(no_args_is_help=True)


def _setup_logging(config: ProvisionConfig):
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if config.debug else "INFO")
    if config.debug:
        logger.debug("Debug mode enabled")
        logger.debug(f"Configuration: {config.export_json()}")


def provision(
    fetch_timeout: Optional[float] = typer.Option(
        None, help="Seconds to wait for user data before giving up"
    ),
):
    overrides = {}
    if fetch_timeout is not None:
        overrides["fetch_timeout"] = fetch_timeout

    try:
        config = ProvisionConfig(**overrides)
        _setup_logging(config)

        report = asyncio.run(provision_files(config, ProviderConfig()))
        if not report.provisioned:
            logger.warning("No cloud config was provisioned, only the initdata digest was written")
        logger.info(f"Provisioned {len(report.written_files)} file(s), digest {report.digest}")
        sys.exit(0)
    except (ProvisionException, ValidationError, ValueError) as e:
        logger.error(f"Failed to provision files:\n{e}")
        sys.exit(1)


def initdata():
    try:
        config = ProvisionConfig()
        _setup_logging(config)

        construct_initdata(config)
        logger.info(f"Wrote initdata to {config.initdata_toml_path}")
        sys.exit(0)
    except (ProvisionException, ValidationError, ValueError) as e:
        logger.error(f"Failed to construct initdata:\n{e}")
        sys.exit(1)


app.command(name="provision-files", help="Provision config files from user data and write the initdata digest.")(provision)
app.command(name="construct-initdata", help="Bundle the static config files into the initdata TOML.")(initdata)

if __name__ == "__main__":
    app()
