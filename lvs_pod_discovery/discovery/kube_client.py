"""Kubernetes API client for listing, watching, reading and labelling pods."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

import urllib3
from kubernetes import client, watch
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from ..config import KubernetesConfig
from ..exceptions import MalformedEventError, MembershipClientError, MembershipQueryError
from .models import EventType, Member, MembershipEvent

logger = logging.getLogger(__name__)


def member_from_pod(pod: client.V1Pod) -> Member:
    """Convert a V1Pod into a Member."""
    metadata = pod.metadata
    status = pod.status
    return Member(
        name=metadata.name,
        namespace=metadata.namespace or "",
        phase=(status.phase if status and status.phase else "Unknown"),
        ip_address=status.pod_ip if status else None,
        labels=dict(metadata.labels or {}),
    )


def decode_event(raw: dict[str, Any]) -> MembershipEvent | None:
    """Turn a raw watch event into a MembershipEvent.

    Returns None for event types the daemon does not act on (BOOKMARK, ERROR).
    Raises MalformedEventError when an add/modify/delete carries something
    other than a pod.
    """
    raw_type = raw.get("type")
    try:
        event_type = EventType(raw_type)
    except ValueError:
        logger.debug("Ignoring watch event of type %s", raw_type)
        return None

    obj = raw.get("object")
    if not isinstance(obj, client.V1Pod) or obj.metadata is None or not obj.metadata.name:
        raise MalformedEventError(
            f"Watch event {raw_type} carried {type(obj).__name__}, expected V1Pod"
        )
    return MembershipEvent(type=event_type, member=member_from_pod(obj))


class KubeClient:
    """Thin wrapper around the CoreV1 pod API."""

    def __init__(self, config: KubernetesConfig):
        self._config = config
        self._load_credentials(config.kubeconfig)
        self._core = client.CoreV1Api()
        self._watch: watch.Watch | None = None

    @staticmethod
    def _load_credentials(kubeconfig: str) -> None:
        """Explicit kubeconfig, else in-cluster service account, else ~/.kube/config."""
        try:
            if kubeconfig:
                k8s_config.load_kube_config(config_file=kubeconfig)
                logger.info("Loaded Kubernetes credentials from %s", kubeconfig)
                return
            try:
                k8s_config.load_incluster_config()
                logger.info("Loaded in-cluster Kubernetes credentials")
            except ConfigException:
                k8s_config.load_kube_config()
                logger.info("Loaded Kubernetes credentials from default kubeconfig")
        except (ConfigException, OSError) as exc:
            raise MembershipClientError(f"Cannot build Kubernetes client: {exc}") from exc

    # ── Queries ─────────────────────────────────────────────────────

    def list_members(self, namespace: str, label_selector: str) -> list[Member]:
        try:
            pods = self._core.list_namespaced_pod(namespace, label_selector=label_selector)
        except ApiException as exc:
            raise MembershipQueryError(
                f"Listing pods {namespace}/{label_selector} failed: {exc.reason}",
                status_code=exc.status,
            ) from exc
        return [member_from_pod(pod) for pod in pods.items]

    def get_member(self, name: str, namespace: str) -> Member | None:
        """Return the pod as a Member, or None when it does not exist."""
        try:
            pod = self._core.read_namespaced_pod(name, namespace)
        except ApiException as exc:
            if exc.status == 404:
                return None
            raise MembershipQueryError(
                f"Reading pod {namespace}/{name} failed: {exc.reason}",
                status_code=exc.status,
            ) from exc
        return member_from_pod(pod)

    def patch_labels(self, name: str, namespace: str, labels: dict[str, str]) -> None:
        body = {"metadata": {"labels": labels}}
        try:
            self._core.patch_namespaced_pod(name, namespace, body)
        except ApiException as exc:
            raise MembershipQueryError(
                f"Patching labels on pod {namespace}/{name} failed: {exc.reason}",
                status_code=exc.status,
            ) from exc

    # ── Watch ───────────────────────────────────────────────────────

    def watch_events(self, namespace: str, label_selector: str) -> Iterator[MembershipEvent]:
        """Yield membership events until the server closes the stream."""
        self._watch = watch.Watch()
        stream = self._watch.stream(
            self._core.list_namespaced_pod,
            namespace,
            label_selector=label_selector,
            timeout_seconds=self._config.watch_timeout_seconds,
        )
        try:
            for raw in stream:
                event = decode_event(raw)
                if event is not None:
                    yield event
        except ApiException as exc:
            raise MembershipQueryError(
                f"Watching pods {namespace}/{label_selector} failed: {exc.reason}",
                status_code=exc.status,
            ) from exc
        except urllib3.exceptions.HTTPError as exc:
            raise MembershipQueryError(f"Watch connection to the API server dropped: {exc}") from exc
        finally:
            self._watch = None

    def stop_watch(self) -> None:
        if self._watch is not None:
            self._watch.stop()
