import json
import logging

from powerbi_refresh_manager import run_refresh
from refresh_config import RefreshConfig


# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

# Main logic
try:
    # Read widget inputs and resolve secrets
    config = RefreshConfig.from_widgets(dbutils)

    output = run_refresh(config)

    logger.info(f"Refresh output: {json.dumps(output.to_dict())}")
    dbutils.jobs.taskValues.set(key="refresh_output", value=output.to_dict())

except Exception as e:
    logger.exception(f"Process failed: {str(e)}")
    raise
