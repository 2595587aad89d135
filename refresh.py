import argparse
import json
import logging
import sys

from powerbi_errors import PowerBIError, RefreshFailedError
from powerbi_refresh_manager import run_refresh
from refresh_config import RefreshConfig, _parse_json_object

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Trigger a Power BI dataset refresh and optionally wait for it to finish. "
                    "Every option falls back to the matching PBI_* environment variable."
    )
    parser.add_argument("--tenant-id", help="Azure tenant ID (PBI_TENANT_ID)")
    parser.add_argument("--client-id", help="Azure AD app client ID (PBI_CLIENT_ID)")
    parser.add_argument("--client-secret", help="Azure AD app client secret (PBI_CLIENT_SECRET)")
    parser.add_argument("--group-id", "--workspace-id", dest="group_id",
                        help="Power BI workspace ID (PBI_GROUP_ID)")
    parser.add_argument("--dataset-id", help="Power BI dataset ID (PBI_DATASET_ID)")
    parser.add_argument("--wait", action=argparse.BooleanOptionalAction, default=None,
                        help="Poll until the refresh finishes (PBI_WAIT)")
    parser.add_argument("--poll-duration", help="Delay between status checks, e.g. 5 or PT5S (PBI_POLL_DURATION)")
    parser.add_argument("--wait-duration", help="Maximum wait, e.g. 600 or PT10M (PBI_WAIT_DURATION)")
    parser.add_argument("--refresh-options", help="Enhanced refresh payload as a JSON object (PBI_REFRESH_OPTIONS)")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()]
    )

    try:
        config = RefreshConfig.from_env(
            tenant_id=args.tenant_id,
            client_id=args.client_id,
            client_secret=args.client_secret,
            group_id=args.group_id,
            dataset_id=args.dataset_id,
            wait=args.wait,
            poll_duration=args.poll_duration,
            wait_duration=args.wait_duration,
            refresh_options=_parse_json_object(args.refresh_options, "--refresh-options"),
        )
        output = run_refresh(config)
    except RefreshFailedError as e:
        logger.error(f"Process failed: {str(e)}")
        if e.output is not None:
            print(json.dumps(e.output.to_dict()))
        return 1
    except (PowerBIError, ValueError) as e:
        logger.exception(f"Process failed: {str(e)}")
        return 1

    print(json.dumps(output.to_dict()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
