"""
Tests for LifecycleEngine

Tests cover:
- Code alphabet, length and uniqueness
- Collision retry and retry cap
- Round trip and burn-after-read
- Attach conflict / not-found mapping
- TTL expiry of reservations and secrets (injected clock)
- Concurrent attach and retrieve races
- Payload validation before any store call
"""

import base64
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import Mock

import pytest

from conftest import MESSAGE_TTL, PLACEHOLDER_TTL, make_payload
from relay.services.lifecycle import (
    CODE_ALPHABET,
    CODE_LENGTH,
    CodeGenerationExhausted,
    HealthStatus,
    InvalidPayload,
    LifecycleEngine,
    generate_code,
    validate_payload,
)
from relay.services.storage import AttachOutcome, SecretStore, StoreError


def mock_store():
    return Mock(spec=SecretStore)


class TestCodeGeneration:
    """Tests for generate_code and request_new_code."""

    def test_alphabet_excludes_confusable_characters(self):
        for ch in "0O1lI":
            assert ch not in CODE_ALPHABET

    def test_generated_code_shape(self):
        for _ in range(200):
            code = generate_code()
            assert len(code) == CODE_LENGTH
            assert set(code) <= set(CODE_ALPHABET)

    def test_request_new_code_reserves_with_placeholder_ttl(self):
        store = mock_store()
        store.reserve_code.return_value = True
        engine = LifecycleEngine(store, placeholder_ttl=PLACEHOLDER_TTL, message_ttl=MESSAGE_TTL)

        code = engine.request_new_code()

        store.reserve_code.assert_called_once_with(code, PLACEHOLDER_TTL)
        assert len(code) == CODE_LENGTH

    def test_codes_are_unique_while_live(self, engine, memory_store):
        codes = {engine.request_new_code() for _ in range(500)}
        assert len(codes) == 500
        assert len(memory_store) == 500

    def test_collision_retries_with_new_candidate(self):
        store = mock_store()
        store.reserve_code.side_effect = [False, False, True]
        engine = LifecycleEngine(store, placeholder_ttl=PLACEHOLDER_TTL, message_ttl=MESSAGE_TTL)

        code = engine.request_new_code()

        assert store.reserve_code.call_count == 3
        assert store.reserve_code.call_args_list[-1].args[0] == code

    def test_collision_retry_is_capped(self):
        store = mock_store()
        store.reserve_code.return_value = False
        engine = LifecycleEngine(
            store, placeholder_ttl=PLACEHOLDER_TTL, message_ttl=MESSAGE_TTL, max_attempts=20
        )

        with pytest.raises(CodeGenerationExhausted) as exc_info:
            engine.request_new_code()

        assert exc_info.value.attempts == 20
        assert store.reserve_code.call_count == 20

    def test_store_error_is_not_retried(self):
        store = mock_store()
        store.reserve_code.side_effect = StoreError("connection refused")
        engine = LifecycleEngine(store, placeholder_ttl=PLACEHOLDER_TTL, message_ttl=MESSAGE_TTL)

        with pytest.raises(StoreError):
            engine.request_new_code()

        assert store.reserve_code.call_count == 1


class TestValidatePayload:
    """Tests for validate_payload."""

    def test_minimum_valid_payload(self):
        body = make_payload(ciphertext=b"x")
        assert validate_payload(body) == body

    def test_surrounding_whitespace_is_trimmed(self):
        body = make_payload()
        assert validate_payload(f"  {body}\n") == body

    @pytest.mark.parametrize("body", ["", "   ", "%%%", "not base64!", "QUJD="])
    def test_malformed_payload_rejected(self, body):
        with pytest.raises(InvalidPayload):
            validate_payload(body)

    def test_line_wrapped_base64_accepted(self):
        body = base64.encodebytes(b"\x00" * 12 + b"x" * 100).decode("ascii")
        assert "\n" in body.strip()

        assert validate_payload(body) == body.strip()

    def test_crlf_wrapped_base64_accepted(self):
        body = base64.encodebytes(b"\x00" * 12 + b"x" * 100).decode("ascii").replace("\n", "\r\n")
        assert validate_payload(body) == body.strip()

    def test_other_inner_whitespace_rejected(self):
        body = make_payload(b"x" * 40)
        with pytest.raises(InvalidPayload):
            validate_payload(body[:10] + " " + body[10:])

    def test_nonce_without_ciphertext_rejected(self):
        with pytest.raises(InvalidPayload):
            validate_payload(make_payload(ciphertext=b""))

    def test_short_payload_rejected(self):
        with pytest.raises(InvalidPayload):
            validate_payload(make_payload(ciphertext=b"", nonce=b"short"))

    def test_invalid_payload_never_reaches_store(self):
        store = mock_store()
        engine = LifecycleEngine(store, placeholder_ttl=PLACEHOLDER_TTL, message_ttl=MESSAGE_TTL)

        with pytest.raises(InvalidPayload):
            engine.attach_secret("Ab3dEf7h", "%%%")
        with pytest.raises(InvalidPayload):
            engine.attach_secret("Ab3dEf7h", make_payload(ciphertext=b""))

        assert store.mock_calls == []


class TestSecretLifecycle:
    """State machine behaviour against the in-process store."""

    def test_round_trip_then_burned(self, engine):
        code = engine.request_new_code()
        blob = make_payload(b"attack at dawn")

        assert engine.attach_secret(code, blob) is AttachOutcome.ATTACHED
        assert engine.retrieve_secret(code) == blob
        assert engine.retrieve_secret(code) is None

    def test_attach_uses_message_ttl(self):
        store = mock_store()
        store.attach_payload.return_value = AttachOutcome.ATTACHED
        engine = LifecycleEngine(store, placeholder_ttl=PLACEHOLDER_TTL, message_ttl=MESSAGE_TTL)
        blob = make_payload()

        engine.attach_secret("Ab3dEf7h", blob)

        store.attach_payload.assert_called_once_with("Ab3dEf7h", blob, MESSAGE_TTL)

    def test_second_attach_conflicts_and_keeps_first(self, engine):
        code = engine.request_new_code()
        first, second = make_payload(b"first"), make_payload(b"second")

        assert engine.attach_secret(code, first) is AttachOutcome.ATTACHED
        assert engine.attach_secret(code, second) is AttachOutcome.CONFLICT
        assert engine.retrieve_secret(code) == first

    def test_attach_unknown_code_not_found(self, engine):
        assert engine.attach_secret("zzzzzzzz", make_payload()) is AttachOutcome.NOT_FOUND

    def test_attach_after_burn_not_found(self, engine):
        code = engine.request_new_code()
        engine.attach_secret(code, make_payload())
        engine.retrieve_secret(code)

        assert engine.attach_secret(code, make_payload()) is AttachOutcome.NOT_FOUND

    def test_retrieve_unknown_code_not_found(self, engine):
        assert engine.retrieve_secret("zzzzzzzz") is None

    def test_retrieve_reserved_empty_burns_reservation(self, engine, memory_store):
        code = engine.request_new_code()

        assert engine.retrieve_secret(code) is None
        assert len(memory_store) == 0
        assert engine.attach_secret(code, make_payload()) is AttachOutcome.NOT_FOUND

    def test_health_check(self, engine):
        assert engine.health_check() is HealthStatus.OK

    def test_health_check_degraded_on_store_error(self):
        store = mock_store()
        store.ping.side_effect = StoreError("timeout")
        engine = LifecycleEngine(store, placeholder_ttl=PLACEHOLDER_TTL, message_ttl=MESSAGE_TTL)

        assert engine.health_check() is HealthStatus.DEGRADED


class TestExpiry:
    """TTL boundaries, simulated with the fake clock."""

    def test_reservation_expires_after_placeholder_ttl(self, engine, clock):
        code = engine.request_new_code()

        clock.advance(PLACEHOLDER_TTL.total_seconds())

        assert engine.attach_secret(code, make_payload()) is AttachOutcome.NOT_FOUND
        assert engine.retrieve_secret(code) is None

    def test_reservation_alive_just_before_ttl(self, engine, clock):
        code = engine.request_new_code()

        clock.advance(PLACEHOLDER_TTL.total_seconds() - 1)

        assert engine.attach_secret(code, make_payload()) is AttachOutcome.ATTACHED

    def test_attach_resets_ttl_to_message_ttl(self, engine, clock):
        code = engine.request_new_code()
        clock.advance(PLACEHOLDER_TTL.total_seconds() - 1)
        blob = make_payload()
        engine.attach_secret(code, blob)

        # Past the first placeholder deadline, within the message TTL
        clock.advance(60)
        assert engine.retrieve_secret(code) == blob

    def test_secret_expires_after_message_ttl(self, engine, clock):
        code = engine.request_new_code()
        engine.attach_secret(code, make_payload())

        clock.advance(MESSAGE_TTL.total_seconds())

        assert engine.retrieve_secret(code) is None

    def test_expired_code_can_be_reserved_again(self, memory_store, clock):
        assert memory_store.reserve_code("Ab3dEf7h", timedelta(seconds=10))
        assert not memory_store.reserve_code("Ab3dEf7h", timedelta(seconds=10))

        clock.advance(10)

        assert memory_store.reserve_code("Ab3dEf7h", timedelta(seconds=10))


class TestConcurrency:
    """Races between concurrent callers on the same code."""

    WORKERS = 16

    def _race(self, fn, args_list):
        barrier = threading.Barrier(len(args_list))

        def run(args):
            barrier.wait()
            return fn(*args)

        with ThreadPoolExecutor(max_workers=len(args_list)) as pool:
            return list(pool.map(run, args_list))

    def test_concurrent_attach_single_winner(self, engine):
        code = engine.request_new_code()
        blobs = [make_payload(f"secret-{i}".encode()) for i in range(self.WORKERS)]

        results = self._race(engine.attach_secret, [(code, b) for b in blobs])

        winners = [b for b, r in zip(blobs, results) if r is AttachOutcome.ATTACHED]
        assert len(winners) == 1
        assert results.count(AttachOutcome.CONFLICT) == self.WORKERS - 1
        assert engine.retrieve_secret(code) == winners[0]

    def test_concurrent_retrieve_single_winner(self, engine):
        code = engine.request_new_code()
        blob = make_payload(b"only once")
        engine.attach_secret(code, blob)

        results = self._race(engine.retrieve_secret, [(code,)] * self.WORKERS)

        assert results.count(blob) == 1
        assert results.count(None) == self.WORKERS - 1

    def test_concurrent_reservations_distinct(self, engine):
        results = self._race(engine.request_new_code, [()] * self.WORKERS)
        assert len(set(results)) == self.WORKERS
