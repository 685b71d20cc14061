"""
Redis-backed work item store.

Layout (all keys under a configurable prefix):
- {prefix}:item:{id}     JSON record for one work item
- {prefix}:pending       sorted set of pending ids, scored by insertion seq
- {prefix}:processing    set of processing ids
- {prefix}:terminal      sorted set of terminal ids, scored by completion epoch
- {prefix}:seq           insertion sequence counter

Claiming, snapshotting and terminal transitions run as Lua scripts so each
one is atomic on the server, whichever API replica issues it.
"""

import functools
import json
import logging
from datetime import datetime
from typing import List, Optional

from redis.exceptions import RedisError

from lockbroker.modules.queue.errors import StoreUnavailable
from lockbroker.modules.queue.models import QueueSnapshot, WorkItem, WorkItemStatus
from lockbroker.modules.storage.store import WorkItemStore

logger = logging.getLogger("lockbroker.storage")

# KEYS: pending, processing  ARGV: item key prefix, started_at, exclusive flag
CLAIM_SCRIPT = """
if ARGV[3] == '1' and redis.call('SCARD', KEYS[2]) > 0 then
  return false
end
while true do
  local ids = redis.call('ZRANGE', KEYS[1], 0, 0)
  if #ids == 0 then
    return false
  end
  local id = ids[1]
  redis.call('ZREM', KEYS[1], id)
  local raw = redis.call('GET', ARGV[1] .. id)
  if raw then
    local item = cjson.decode(raw)
    item['status'] = 'processing'
    item['processingStartedAt'] = ARGV[2]
    local encoded = cjson.encode(item)
    redis.call('SET', ARGV[1] .. id, encoded)
    redis.call('SADD', KEYS[2], id)
    return encoded
  end
end
"""

# KEYS: pending, processing  ARGV: item key prefix
SNAPSHOT_SCRIPT = """
local function load(ids)
  local out = {}
  for _, id in ipairs(ids) do
    local raw = redis.call('GET', ARGV[1] .. id)
    if raw then
      table.insert(out, raw)
    end
  end
  return out
end
return {load(redis.call('ZRANGE', KEYS[1], 0, -1)), load(redis.call('SMEMBERS', KEYS[2]))}
"""

# KEYS: pending, processing, terminal
# ARGV: item key prefix, id, status, completed_at, failure_reason, completed epoch,
#       expected current status (empty for any)
MARK_TERMINAL_SCRIPT = """
local key = ARGV[1] .. ARGV[2]
local raw = redis.call('GET', key)
if not raw then
  return false
end
local item = cjson.decode(raw)
if ARGV[7] ~= '' and item['status'] ~= ARGV[7] then
  return false
end
item['status'] = ARGV[3]
item['completedAt'] = ARGV[4]
if ARGV[5] ~= '' then
  item['failureReason'] = ARGV[5]
else
  item['failureReason'] = nil
end
local encoded = cjson.encode(item)
redis.call('SET', key, encoded)
redis.call('ZREM', KEYS[1], ARGV[2])
redis.call('SREM', KEYS[2], ARGV[2])
redis.call('ZADD', KEYS[3], ARGV[6], ARGV[2])
return encoded
"""


def _translate_errors(func):
    """Raise StoreUnavailable for any Redis failure."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except RedisError as e:
            logger.error(f"Redis operation {func.__name__} failed: {e}")
            raise StoreUnavailable(str(e)) from e

    return wrapper


def _epoch(timestamp: str) -> float:
    return datetime.fromisoformat(timestamp).timestamp()


class RedisWorkItemStore(WorkItemStore):
    def __init__(self, redis_client, key_prefix: str = "lockqueue"):
        """
        Initialize Redis store.

        Args:
            redis_client: Async Redis client (decode_responses=True)
            key_prefix: Namespace for all keys written by this store
        """
        self.redis = redis_client
        self.key_prefix = key_prefix

        self.pending_key = f"{key_prefix}:pending"
        self.processing_key = f"{key_prefix}:processing"
        self.terminal_key = f"{key_prefix}:terminal"
        self.seq_key = f"{key_prefix}:seq"
        self.item_prefix = f"{key_prefix}:item:"

        self._claim = self.redis.register_script(CLAIM_SCRIPT)
        self._snapshot = self.redis.register_script(SNAPSHOT_SCRIPT)
        self._mark_terminal = self.redis.register_script(MARK_TERMINAL_SCRIPT)

    def _item_key(self, item_id: str) -> str:
        return f"{self.item_prefix}{item_id}"

    @staticmethod
    def _decode(raw) -> WorkItem:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return WorkItem.from_dict(json.loads(raw))

    @_translate_errors
    async def insert(self, item: WorkItem) -> WorkItem:
        item.seq = await self.redis.incr(self.seq_key)

        pipe = self.redis.pipeline(transaction=True)
        pipe.set(self._item_key(item.id), json.dumps(item.to_dict()))
        pipe.zadd(self.pending_key, {item.id: item.seq})
        await pipe.execute()

        return item

    @_translate_errors
    async def get(self, item_id: str) -> Optional[WorkItem]:
        raw = await self.redis.get(self._item_key(item_id))
        if not raw:
            return None
        return self._decode(raw)

    @_translate_errors
    async def scan(self, status: Optional[WorkItemStatus] = None) -> List[WorkItem]:
        if status is WorkItemStatus.PENDING:
            ids = await self.redis.zrange(self.pending_key, 0, -1)
        elif status is WorkItemStatus.PROCESSING:
            ids = list(await self.redis.smembers(self.processing_key))
        else:
            ids = list(await self.redis.zrange(self.pending_key, 0, -1))
            ids.extend(await self.redis.smembers(self.processing_key))
            ids.extend(await self.redis.zrange(self.terminal_key, 0, -1))

        if not ids:
            return []

        raws = await self.redis.mget([self._item_key(item_id) for item_id in ids])
        items = [self._decode(raw) for raw in raws if raw]
        if status is not None:
            items = [item for item in items if item.status == status]
        return sorted(items, key=lambda i: i.seq)

    @_translate_errors
    async def snapshot(self) -> QueueSnapshot:
        pending, processing = await self._snapshot(
            keys=[self.pending_key, self.processing_key],
            args=[self.item_prefix],
        )
        return QueueSnapshot(
            pending=[self._decode(raw) for raw in pending],
            processing=sorted((self._decode(raw) for raw in processing), key=lambda i: i.seq),
        )

    @_translate_errors
    async def claim_next(self, started_at: str, exclusive: bool = False) -> Optional[WorkItem]:
        raw = await self._claim(
            keys=[self.pending_key, self.processing_key],
            args=[self.item_prefix, started_at, "1" if exclusive else "0"],
        )
        if not raw:
            return None
        return self._decode(raw)

    @_translate_errors
    async def mark_terminal(
        self,
        item_id: str,
        status: WorkItemStatus,
        completed_at: str,
        failure_reason: Optional[str] = None,
        expected_status: Optional[WorkItemStatus] = None,
    ) -> Optional[WorkItem]:
        raw = await self._mark_terminal(
            keys=[self.pending_key, self.processing_key, self.terminal_key],
            args=[
                self.item_prefix,
                item_id,
                status.value,
                completed_at,
                failure_reason or "",
                _epoch(completed_at),
                expected_status.value if expected_status else "",
            ],
        )
        if not raw:
            return None
        return self._decode(raw)

    @_translate_errors
    async def delete_terminal_before(self, cutoff: str) -> int:
        ids = await self.redis.zrangebyscore(self.terminal_key, "-inf", _epoch(cutoff))
        if not ids:
            return 0

        pipe = self.redis.pipeline(transaction=True)
        pipe.delete(*[self._item_key(item_id) for item_id in ids])
        pipe.zrem(self.terminal_key, *ids)
        await pipe.execute()

        logger.debug(f"Removed {len(ids)} expired work items")
        return len(ids)

    @_translate_errors
    async def ping(self) -> bool:
        return bool(await self.redis.ping())
