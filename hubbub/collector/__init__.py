"""Collector package for Hubbub.

Watches the pods of one namespace and turns failed pod updates into
deduplicated alerts.

Submodules
----------
extractor -- extract_failure(): raw pod object to FailureRecord.
timezone  -- resolve_zone(), normalize(): display time-zone handling.
dedup     -- is_new(): decides whether a failure deserves a fresh alert.
source    -- KubernetesPodEventSource: watch subscriptions on the pod API.
watcher   -- PodFailureWatcher: subscribe/listen/resubscribe loop.
"""
