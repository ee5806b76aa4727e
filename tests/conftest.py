"""Shared fixtures: an in-memory stand-in for the Supabase client and a TestClient wired to it."""

import copy
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from dining_journal.main import app
from dining_journal.database.supabase_client import SupabaseClient, get_supabase, get_auth_client
from dining_journal.modules.auth.service import _AUTH_USER_CACHE


UNIQUE_KEYS = {
    "families": [("invite_code",)],
    "family_members": [("user_id",)],
    "visit_attendees": [("visit_id", "user_id")],
}

CASCADES = {
    "families": [("family_members", "family_id"), ("restaurants", "family_id")],
    "restaurants": [("visits", "restaurant_id")],
    "visits": [("dishes", "visit_id"), ("visit_attendees", "visit_id")],
}

TIMESTAMP_DEFAULTS = {
    "families": ("created_at", "updated_at"),
    "family_members": ("joined_at",),
    "restaurants": ("created_at", "updated_at"),
    "visits": ("created_at", "updated_at"),
    "dishes": ("created_at",),
    "profiles": ("created_at", "updated_at"),
}


def api_error(code: str, message: str = "store rejected request") -> APIError:
    return APIError({"message": message, "code": code, "hint": None, "details": None})


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.payload = None
        self.filters = []
        self.orders = []
        self._limit = None
        self._offset = 0

    def select(self, columns: str = "*"):
        self.op = "select"
        self.columns = columns
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.op = "update"
        self.payload = payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def offset(self, count):
        self._offset = count
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.op))
        self.db.raise_if_failing(self.table, self.op)
        if self.db.hidden_by_policy(self.table, self.op):
            return SimpleNamespace(data=[])
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "select":
            result = [r for r in rows if self._matches(r)]
            for column, desc in reversed(self.orders):
                result.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
            result = result[self._offset:]
            if self._limit is not None:
                result = result[:self._limit]
            if self.columns.strip() != "*":
                wanted = [c.strip() for c in self.columns.split(",")]
                result = [{c: r.get(c) for c in wanted} for r in result]
            return SimpleNamespace(data=copy.deepcopy(result))

        if self.op == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            prepared = []
            for row in new_rows:
                row = copy.deepcopy(row)
                row.setdefault("id", str(uuid.uuid4()))
                for column in TIMESTAMP_DEFAULTS.get(self.table, ()):
                    row.setdefault(column, self.db.now())
                prepared.append(row)
            self.db.check_unique(self.table, prepared)
            rows.extend(prepared)
            return SimpleNamespace(data=copy.deepcopy(prepared))

        if self.op == "update":
            matched = [r for r in rows if self._matches(r)]
            candidate = [{**r, **self.payload} for r in matched]
            others = [r for r in rows if not self._matches(r)]
            self.db.check_unique(self.table, candidate, existing=others)
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return SimpleNamespace(data=copy.deepcopy(matched))

        if self.op == "delete":
            matched = [r for r in rows if self._matches(r)]
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            for row in matched:
                self.db.cascade(self.table, row["id"])
            return SimpleNamespace(data=copy.deepcopy(matched))

        raise AssertionError(f"unsupported op {self.op}")


class FakeAdmin:
    def __init__(self):
        self.updates = []

    def update_user_by_id(self, user_id, attributes):
        self.updates.append((user_id, attributes))
        return SimpleNamespace(user=SimpleNamespace(id=user_id))


class FakeAuth:
    def __init__(self):
        self.users_by_token = {}
        self.passwords = {}
        self.codes = {}
        self.token_hashes = {}
        self.sign_ups = []
        self.reset_requests = []
        self.signed_out = 0
        self.admin = FakeAdmin()

    def add_user(self, user_id, email, token, full_name=None, password="secret123"):
        user = SimpleNamespace(
            id=user_id, email=email,
            user_metadata={"full_name": full_name} if full_name else {},
            created_at="2024-01-01T00:00:00+00:00"
        )
        self.users_by_token[token] = user
        self.passwords[email] = (password, user, token)
        return user

    def get_user(self, jwt=None):
        if jwt not in self.users_by_token:
            raise Exception("invalid JWT: token is expired")
        return SimpleNamespace(user=self.users_by_token[jwt])

    def sign_up(self, credentials):
        if credentials["email"] in self.passwords:
            raise Exception("User already registered")
        self.sign_ups.append(credentials)
        user = SimpleNamespace(id=str(uuid.uuid4()), email=credentials["email"])
        return SimpleNamespace(user=user, session=None)

    def sign_in_with_password(self, credentials):
        entry = self.passwords.get(credentials["email"])
        if not entry or entry[0] != credentials["password"]:
            raise Exception("Invalid login credentials")
        password, user, token = entry
        return SimpleNamespace(user=user, session=SimpleNamespace(access_token=token))

    def sign_out(self):
        self.signed_out += 1

    def reset_password_for_email(self, email, options=None):
        self.reset_requests.append((email, options))

    def add_pkce_code(self, code, code_verifier, user):
        self.codes[code] = (code_verifier, user)

    def add_token_hash(self, token_hash, otp_type, user):
        self.token_hashes[token_hash] = (otp_type, user)

    def exchange_code_for_session(self, params):
        verifier, user = self.codes.get(params.get("auth_code"), (None, None))
        if user is None:
            raise Exception("invalid flow state, no valid flow state found")
        if not params.get("code_verifier") or params["code_verifier"] != verifier:
            raise Exception("code challenge does not match previously saved code verifier")
        del self.codes[params["auth_code"]]
        return SimpleNamespace(user=user, session=SimpleNamespace(access_token=f"session-{user.id}"))

    def verify_otp(self, params):
        otp_type, user = self.token_hashes.get(params.get("token_hash"), (None, None))
        if user is None or params.get("type") != otp_type:
            raise Exception("Email link is invalid or has expired")
        del self.token_hashes[params["token_hash"]]
        return SimpleNamespace(user=user, session=SimpleNamespace(access_token=f"session-{user.id}"))


class FakeSupabase:
    """Enough of supabase.Client for the services: table queries and auth."""

    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failures = {}
        self.policy_hidden = {}
        self.auth = FakeAuth()
        self._clock = 0

    def table(self, name):
        return FakeQuery(self, name)

    def now(self):
        self._clock += 1
        base = datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp() + self._clock
        return datetime.fromtimestamp(base, tz=timezone.utc).isoformat()

    def fail_on(self, table, op, exc=None, times=1):
        self.failures[(table, op)] = [exc or api_error("23503", "foreign key violation"), times]

    def hide_from_policy(self, table, op, after=0):
        """Make writes of this kind match no rows, as a row-level security policy would.

        The first `after` calls still go through.
        """
        self.policy_hidden[(table, op)] = after

    def hidden_by_policy(self, table, op):
        if (table, op) not in self.policy_hidden:
            return False
        if self.policy_hidden[(table, op)] > 0:
            self.policy_hidden[(table, op)] -= 1
            return False
        return True

    def raise_if_failing(self, table, op):
        entry = self.failures.get((table, op))
        if entry and entry[1] > 0:
            entry[1] -= 1
            raise entry[0]

    def check_unique(self, table, candidates, existing=None):
        existing = self.tables.get(table, []) if existing is None else existing
        for columns in UNIQUE_KEYS.get(table, []):
            seen = {tuple(r.get(c) for c in columns) for r in existing}
            for row in candidates:
                key = tuple(row.get(c) for c in columns)
                if key in seen:
                    raise api_error("23505", "duplicate key value violates unique constraint")
                seen.add(key)

    def cascade(self, table, row_id):
        for child, column in CASCADES.get(table, []):
            doomed = [r for r in self.tables.get(child, []) if r.get(column) == row_id]
            self.tables[child] = [r for r in self.tables.get(child, []) if r.get(column) != row_id]
            for row in doomed:
                self.cascade(child, row["id"])

    def rows(self, table, **where):
        return [r for r in self.tables.get(table, []) if all(r.get(k) == v for k, v in where.items())]

    def writes(self):
        return [c for c in self.calls if c[1] in ("insert", "update", "delete")]

    # seeding helpers

    def add_user(self, user_id, email=None, full_name=None):
        email = email or f"{user_id}@example.com"
        token = f"token-{user_id}"
        self.auth.add_user(user_id, email, token, full_name=full_name)
        self.tables.setdefault("profiles", []).append({
            "id": user_id, "email": email, "full_name": full_name,
            "avatar_url": None, "created_at": self.now(), "updated_at": self.now()
        })
        return {"Authorization": f"Bearer {token}"}

    def add_family(self, family_id, owner_id, name="The Smiths", invite_code="ABCD2345"):
        self.tables.setdefault("families", []).append({
            "id": family_id, "name": name, "invite_code": invite_code, "created_by": owner_id,
            "created_at": self.now(), "updated_at": self.now()
        })
        self.add_member(family_id, owner_id, "owner")

    def add_member(self, family_id, user_id, role="member"):
        self.tables.setdefault("family_members", []).append({
            "id": str(uuid.uuid4()), "family_id": family_id, "user_id": user_id,
            "role": role, "nickname": None, "joined_at": self.now()
        })

    def add_restaurant(self, restaurant_id, family_id, name, created_by, cuisine=None, address=None):
        self.tables.setdefault("restaurants", []).append({
            "id": restaurant_id, "family_id": family_id, "name": name, "cuisine": cuisine,
            "address": address, "website": None, "notes": None, "created_by": created_by,
            "created_at": self.now(), "updated_at": self.now()
        })

    def add_visit(self, visit_id, restaurant_id, family_id, created_by, date, **fields):
        self.tables.setdefault("visits", []).append({
            "id": visit_id, "restaurant_id": restaurant_id, "family_id": family_id,
            "date": date, "overall_rating": None, "value_for_money": None, "total_bill": None,
            "number_of_people": None, "would_recommend": None, "notes": None,
            "created_by": created_by, "created_at": self.now(), "updated_at": self.now(),
            **fields
        })


@pytest.fixture
def fake_db():
    db = FakeSupabase()
    SupabaseClient._client = db
    SupabaseClient._service_client = db
    _AUTH_USER_CACHE.clear()
    yield db
    SupabaseClient.reset_client()
    _AUTH_USER_CACHE.clear()


@pytest.fixture
def client(fake_db):
    app.dependency_overrides[get_supabase] = lambda: fake_db
    app.dependency_overrides[get_auth_client] = lambda: fake_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def family(fake_db):
    """A family owned by alice with bob (admin), carol and dave (members); eve has no family."""
    headers = {
        "alice": fake_db.add_user("alice", full_name="Alice Smith"),
        "bob": fake_db.add_user("bob", full_name="Bob Smith"),
        "carol": fake_db.add_user("carol"),
        "dave": fake_db.add_user("dave", full_name="Dave Smith"),
        "eve": fake_db.add_user("eve", full_name="Eve Jones"),
    }
    fake_db.add_family("fam-1", "alice")
    fake_db.add_member("fam-1", "bob", "admin")
    fake_db.add_member("fam-1", "carol")
    fake_db.add_member("fam-1", "dave")
    fake_db.add_restaurant("rest-1", "fam-1", "Golden Dragon", "alice", cuisine="Chinese", address="1 Main St")
    return headers
