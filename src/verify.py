"""Cluster health verification after an infrastructure apply."""

import logging
import time
from typing import Optional

from kubernetes.client import ApiException
from urllib3.exceptions import HTTPError

from errors import VerificationFailed
from kube import KubeClient

logger = logging.getLogger(__name__)


class ClusterVerifier:
    """Wait until the API answers and the expected nodes are Ready."""

    def __init__(self, client: KubeClient, timeout: int = 600, interval: int = 10):
        self.client = client
        self.timeout = timeout
        self.interval = interval

    def _ready_nodes(self) -> Optional[int]:
        """Count Ready nodes, or None while the API is unreachable."""
        try:
            self.client.server_version()
            nodes = self.client.list_nodes()
        except (ApiException, HTTPError, OSError) as e:
            logger.debug(f"API not reachable yet: {e}")
            return None
        return sum(1 for n in nodes if n.ready)

    def verify(self, expected_nodes: int) -> None:
        """Poll until Ready node count equals expected_nodes.

        Raises:
            VerificationFailed: On timeout, naming the last observed count
        """
        logger.info(f"Waiting for {expected_nodes} Ready node(s) (timeout: {self.timeout}s)...")
        deadline = time.time() + self.timeout
        observed = None
        while True:
            observed = self._ready_nodes()
            if observed == expected_nodes:
                logger.info(f"Cluster verified: {observed}/{expected_nodes} nodes Ready")
                return
            if time.time() >= deadline:
                break
            logger.debug(f"Ready nodes: {observed}/{expected_nodes}, retrying in {self.interval}s...")
            time.sleep(self.interval)

        if observed is None:
            raise VerificationFailed(
                f"API server unreachable after {self.timeout}s (observed=0, expected={expected_nodes})",
                observed=0,
                expected=expected_nodes,
            )
        raise VerificationFailed(
            f"timed out waiting for nodes (observed={observed}, expected={expected_nodes})",
            observed=observed,
            expected=expected_nodes,
        )
