"""Shared infrastructure for all CloudSync services.

Attributes:
    configs: [TransferConfig][cloudsync.services.common.configs.TransferConfig]
        and identifier validation for configured table lists.
    lock: Advisory lock key derivation and
        [AdvisoryLockManager][cloudsync.services.common.lock.AdvisoryLockManager].
    queries: Every SQL statement run against the local store.
    remote: [PostgresRemoteClient][cloudsync.services.common.remote.PostgresRemoteClient]
        for typed reads and upserts on the remote store.
    schema: [ensure_sync_schema()][cloudsync.services.common.schema.ensure_sync_schema].
    transfer: Per-row bounded-retry [transfer()][cloudsync.services.common.transfer.transfer].
"""

from .configs import TransferConfig, quote_ident, validate_identifier, validate_table_list
from .lock import LOCK_KEY_MASK, AdvisoryLockManager, LockToken, lock_key_for
from .queries import (
    claim_next_job,
    complete_job,
    enqueue_job,
    fail_job,
    fetch_all_rows,
    fetch_rows_by_ids,
    fetch_rows_since,
    find_local_row,
    get_cloud_database_url,
    get_connection,
    get_job,
    get_local_columns,
    insert_local_row,
    register_connection,
    update_local_row,
)
from .remote import PostgresRemoteClient, build_upsert_query, to_text_param
from .schema import SYNC_SCHEMA, ensure_sync_schema
from .transfer import CONNECTION_ERRORS, iter_batches, transfer


__all__ = [
    "CONNECTION_ERRORS",
    "LOCK_KEY_MASK",
    "SYNC_SCHEMA",
    "AdvisoryLockManager",
    "LockToken",
    "PostgresRemoteClient",
    "TransferConfig",
    "build_upsert_query",
    "claim_next_job",
    "complete_job",
    "enqueue_job",
    "ensure_sync_schema",
    "fail_job",
    "fetch_all_rows",
    "fetch_rows_by_ids",
    "fetch_rows_since",
    "find_local_row",
    "get_cloud_database_url",
    "get_connection",
    "get_job",
    "get_local_columns",
    "insert_local_row",
    "iter_batches",
    "lock_key_for",
    "quote_ident",
    "register_connection",
    "to_text_param",
    "transfer",
    "update_local_row",
    "validate_identifier",
    "validate_table_list",
]
