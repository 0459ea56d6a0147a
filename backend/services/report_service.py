"""Report orchestration: fetch issues per target and aggregate them."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

from services.aggregation import aggregate
from services.jira_client import DEFAULT_MAX_RESULTS
from services.translator import REPORT_KINDS, identifier_for, translate

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 6


class ReportService:
    """Answers dashboard queries from Jira search results."""

    def __init__(self, client, max_results: int = DEFAULT_MAX_RESULTS,
                 workers: int = DEFAULT_WORKERS):
        self.client = client
        self.max_results = max_results
        self.workers = workers

    def fetch_issues(self, jql: str) -> list:
        return self.client.search(jql, max_results=self.max_results)

    def run_query(self, range_from, range_to, targets) -> list:
        """Build one report per target, in target order.

        Targets are fetched in parallel. The first failed fetch cancels the
        ones not yet started and is raised; no partial result is returned.

        Raises:
            InvalidRangeError: for a missing or malformed range.
            UpstreamFetchError: if any Jira search fails.
        """
        request = translate(range_from, range_to, targets)
        descriptors = request.descriptors
        if not descriptors:
            return []

        def build_report(descriptor):
            issues = self.fetch_issues(descriptor.jql)
            logger.debug(f"Target {descriptor.target!r}: {len(issues)} issues")
            return aggregate(issues, descriptor).to_dict()

        results = [None] * len(descriptors)
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = {
                executor.submit(build_report, descriptor): index
                for index, descriptor in enumerate(descriptors)
            }
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except Exception:
                for future in futures:
                    future.cancel()
                raise

        return results

    def list_report_kinds(self) -> list:
        """Fixed report kinds followed by the user's saved Jira filters."""
        result = [
            {"text": label, "value": identifier_for(kind)}
            for label, kind in REPORT_KINDS
        ]

        for saved in self.client.list_favourite_filters():
            result.append({
                "text": f"filter: {saved['name']}",
                "value": saved["jql"]
            })

        return result
