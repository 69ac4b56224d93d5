"""
In-memory stand-ins for Redis and the text generation client.
"""


class FakeRedis:
    """Minimal in-memory Redis mock for unit tests."""

    def __init__(self):
        self._store: dict = {}
        self._ttls: dict = {}

    def get(self, key):
        return self._store.get(key)

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self._store:
            return False
        self._store[key] = value
        if ex:
            self._ttls[key] = ex
        return True

    def setex(self, key, ttl, value):
        self._store[key] = value
        self._ttls[key] = ttl
        return True

    def delete(self, *keys):
        for k in keys:
            self._store.pop(k, None)
            self._ttls.pop(k, None)

    def incr(self, key):
        val = int(self._store.get(key, 0)) + 1
        self._store[key] = str(val)
        return val

    def decr(self, key):
        val = int(self._store.get(key, 0)) - 1
        self._store[key] = str(val)
        return val

    def expire(self, key, ttl):
        self._ttls[key] = ttl
        return True

    def ttl(self, key):
        return self._ttls.get(key, -1)

    def ping(self):
        return True


class FakeTextClient:
    """Replies are consumed in call order; once exhausted every call gets DEFAULT_REPLY."""

    DEFAULT_REPLY = '{"weeklyPlan": {"day1": {"meals": []}}, "notes": "ok"}'

    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    def generate(self, system_prompt, user_prompt, temperature=0.7, max_tokens=6000, on_text=None):
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt})
        if self.error is not None:
            raise self.error
        text = self.replies.pop(0) if self.replies else self.DEFAULT_REPLY
        if on_text is not None:
            on_text(text[: len(text) // 2])
        return text
