import logging
from datetime import datetime, timedelta
from typing import List, Optional, Union

import requests

from polling import PollTimeoutError, poll_until
from powerbi_client import PowerBIClient
from powerbi_errors import ProtocolError, RefreshFailedError, RefreshTimeoutError
from powerbi_models import Credentials, RefreshOutput, RefreshRecord, parse_refreshes
from refresh_config import DEFAULT_POLL_DURATION, DEFAULT_WAIT_DURATION, RefreshConfig, _validate_parameters

logger = logging.getLogger(__name__)

API_BASE = "https://api.powerbi.com/v1.0/myorg"
REQUEST_ID_HEADER = "RequestId"


class PowerBIRefreshManager:
    def __init__(
        self,
        client: PowerBIClient,
        workspace_id: str,
        dataset_id: str,
        refresh_options: Optional[dict] = None,
        api_base: str = API_BASE,
    ):
        """
        Initializes the PowerBIRefreshManager.

        :param client: Authenticated Power BI client
        :param workspace_id: Power BI workspace (group) ID
        :param dataset_id: Power BI dataset ID
        :param refresh_options: Optional enhanced refresh payload (type, commitMode, objects...)
        :param api_base: Base URL of the Power BI REST API
        """
        _validate_parameters({
            "workspace_id": workspace_id,
            "dataset_id": dataset_id,
        })

        self.client = client
        self.workspace_id = workspace_id
        self.dataset_id = dataset_id
        self.refresh_options = refresh_options
        self.api_base = api_base.rstrip("/")

    @property
    def refreshes_url(self) -> str:
        return f"{self.api_base}/groups/{self.workspace_id}/datasets/{self.dataset_id}/refreshes"

    def trigger_refresh(self) -> str:
        """
        Starts an asynchronous refresh of the dataset.

        :return: Request ID assigned by Power BI to the refresh
        :raises ProtocolError: If the response carries no RequestId header
        """
        response = self.client.send("POST", self.refreshes_url, json=self.refresh_options)
        logger.info(f"Trigger Refresh Response: {response.status_code}")

        # requests exposes headers as a case-insensitive mapping
        request_id = response.headers.get(REQUEST_ID_HEADER)
        if not request_id:
            raise ProtocolError(
                f"Invalid response, missing {REQUEST_ID_HEADER} header, "
                f"body '{response.text}', headers {sorted(response.headers.keys())}"
            )

        logger.info(f"Refresh created with id '{request_id}'")
        return request_id

    def list_refreshes(self) -> List[RefreshRecord]:
        """Returns the refresh history of the dataset, most recent first."""
        return parse_refreshes(self.client.send_json("GET", self.refreshes_url))

    def find_refresh(self, request_id: str) -> RefreshRecord:
        """
        Looks up one refresh in the dataset's refresh history.

        :raises ProtocolError: If the refresh is not part of the returned history
        """
        matches = [record for record in self.list_refreshes() if record.request_id == request_id]
        if not matches:
            raise ProtocolError(f"Unable to find refresh '{request_id}'")
        if len(matches) > 1:
            logger.warning(f"Refresh '{request_id}' appears {len(matches)} times in history, using the first")
        return matches[0]

    def wait_for_refresh_completion(
        self,
        request_id: str,
        poll_interval: Union[float, timedelta] = DEFAULT_POLL_DURATION,
        wait_timeout: Union[float, timedelta] = DEFAULT_WAIT_DURATION,
        sleep=None,
        clock=None,
    ) -> RefreshRecord:
        """
        Waits until the refresh reaches a terminal status by polling Power BI.

        :param request_id: ID returned by trigger_refresh
        :param poll_interval: Time between polling attempts
        :param wait_timeout: Maximum total time to wait
        :return: The completed refresh record
        :raises RefreshFailedError: If the refresh ends with a status other than Completed
        :raises RefreshTimeoutError: If no terminal status is seen before wait_timeout
        :raises ProtocolError: If the refresh disappears from the history
        """
        start_time = datetime.now()
        logger.info(f"Started polling at {start_time.strftime('%Y-%m-%d %H:%M:%S')}")
        observed = {"last": None}

        def check() -> Optional[RefreshRecord]:
            record = self.find_refresh(request_id)
            logger.debug(f"Refresh: {record}")

            previous = observed["last"]
            if previous is None or previous.status != record.status:
                logger.info(f"Current Refresh Status: {record.status} at {datetime.now().strftime('%H:%M:%S')}")
            observed["last"] = record

            if record.in_progress:
                return None
            return record

        timing = {}
        if sleep is not None:
            timing["sleep"] = sleep
        if clock is not None:
            timing["clock"] = clock

        try:
            result = poll_until(check, poll_interval, wait_timeout, **timing)
        except PollTimeoutError as e:
            raise RefreshTimeoutError(request_id, e.timeout, observed["last"]) from e

        end_time = datetime.now()
        total_time = (end_time - start_time).total_seconds()
        logger.info(f"Finished at {end_time.strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info(f"Total Refresh Time: {total_time:.2f} seconds")

        if not result.succeeded:
            raise RefreshFailedError(result, RefreshOutput.from_record(request_id, result))
        return result

    def run(
        self,
        wait: bool = False,
        poll_interval: Union[float, timedelta] = DEFAULT_POLL_DURATION,
        wait_timeout: Union[float, timedelta] = DEFAULT_WAIT_DURATION,
        **timing,
    ) -> RefreshOutput:
        """
        Triggers a refresh and, if requested, waits for it to finish.

        :param wait: Whether to poll until the refresh completes
        :return: RefreshOutput; status fields are populated only when waiting
        """
        request_id = self.trigger_refresh()
        if not wait:
            return RefreshOutput(request_id=request_id)

        record = self.wait_for_refresh_completion(request_id, poll_interval, wait_timeout, **timing)
        logger.info(f"Refresh Completed with Status: {record.status}")
        return RefreshOutput.from_record(request_id, record)


def run_refresh(config: RefreshConfig, session: Optional[requests.Session] = None, **timing) -> RefreshOutput:
    """
    Runs a dataset refresh described by a RefreshConfig.

    :param config: Validated refresh configuration
    :param session: Optional HTTP transport; a session created here is closed afterwards
    :return: RefreshOutput of the run
    """
    credentials = Credentials(
        tenant_id=config.tenant_id,
        client_id=config.client_id,
        client_secret=config.client_secret,
    )
    client = PowerBIClient(credentials, session=session)
    manager = PowerBIRefreshManager(
        client=client,
        workspace_id=config.group_id,
        dataset_id=config.dataset_id,
        refresh_options=config.refresh_options,
    )
    try:
        return manager.run(
            wait=config.wait,
            poll_interval=config.poll_duration,
            wait_timeout=config.wait_duration,
            **timing,
        )
    finally:
        if session is None:
            client.close()
