"""
AWS Lambda entry point, invoked by a periodic EventBridge rule.
"""

import json
import logging
import time
from typing import Any, Dict

from .config import Settings
from .controller import run_control_loop
from .log import setup_logging

logger = logging.getLogger(__name__)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Run one control-loop pass.

    Args:
        event: Trigger payload (only logged)
        context: Lambda context (unused)

    Returns:
        API Gateway style response with the pass summary
    """
    start = time.perf_counter()
    try:
        settings = Settings.from_env()
        setup_logging(settings.log_level)
        logger.info(f"Event: {json.dumps(event, default=str)}")

        summary = run_control_loop(settings)
        execution_time = time.perf_counter() - start
        logger.info(f"Lambda execution completed in {execution_time:.2f} seconds")
        return {
            "statusCode": 200,
            "body": json.dumps({
                "message": "EC2, RDS and Auto Scaling group management completed",
                "executionTime": f"{execution_time:.2f} seconds",
                "summary": summary.to_dict(),
            }),
        }
    except Exception as e:
        logger.exception(f"Error in lambda handler: {e}")
        return {
            "statusCode": 500,
            "body": json.dumps({
                "message": "Error occurred during EC2, RDS and Auto Scaling group management",
                "error": str(e),
            }),
        }
