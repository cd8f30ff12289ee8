# tests/test_registry.py
"""
MetadataRegistry test suite

Categories:
  R1. create (nonce, CREATE2, self-attestation, first writer wins)
  R2. update / clear / version accounting
  R3. Delegation and the public sentinel
  R4. Categories
  R5. Notifications and helpers
  R6. Self-attestation disabled
"""

import logging

import pytest
from web3 import Web3

from metadata_registry import (
    DEFAULT_CATEGORY,
    AuthorizationError,
    Category,
    Delegate,
    DelegateKind,
    MetadataRegistry,
    NotFoundError,
    PermissionDeniedError,
    RegistryConfig,
    RegistryEvent,
    SentinelLockError,
    ValidationError,
    compute_create2_address,
)

from conftest import DEPLOY_NONCE, IPFS_HASHES


def _create(registry, caller, subject, mh, proof=None):
    return registry.create(caller, subject, mh.digest, mh.hash_function, mh.length, proof)


def _update(registry, caller, subject, mh, category=None):
    return registry.update(caller, subject, mh.digest, mh.hash_function, mh.length, category)


# =============================================================================
# R1. create
# =============================================================================

class TestCreate:

    def test_nonce_proof_initializes_entry(self, registry, deployer, subject, mh_a):
        assert registry.get_delegate(subject).is_unset
        assert registry.get_version(subject) == 0

        entry = _create(registry, deployer, subject, mh_a, proof=DEPLOY_NONCE)

        assert entry.delegate == Delegate.of(deployer)
        assert not entry.self_attested
        assert registry.get_entry(subject) == mh_a
        assert registry.get_multihash(subject) == IPFS_HASHES[0]
        assert registry.get_version(subject) == 1
        assert registry.get_deployer(subject) == deployer
        assert registry.get_category_approval(subject, DEFAULT_CATEGORY)
        assert registry.events[-1][0] is RegistryEvent.ENTRY_SET

    def test_wrong_nonce_rejected(self, registry, deployer, subject, mh_a):
        with pytest.raises(AuthorizationError):
            _create(registry, deployer, subject, mh_a, proof=DEPLOY_NONCE + 1)
        assert registry.get_entry(subject) is None
        assert registry.get_version(subject) == 0
        assert registry.events == ()

    def test_other_caller_cannot_borrow_proof(self, registry, other, subject, mh_a):
        with pytest.raises(AuthorizationError):
            _create(registry, other, subject, mh_a, proof=DEPLOY_NONCE)
        assert registry.get_deployer(subject) is None

    def test_proof_required(self, registry, deployer, subject, mh_a):
        with pytest.raises(AuthorizationError):
            _create(registry, deployer, subject, mh_a)

    def test_plain_account_is_not_a_contract(self, registry, deployer, other, mh_a):
        # `other` is an account, not something `deployer` created
        for nonce in range(5):
            with pytest.raises(AuthorizationError):
                _create(registry, deployer, other, mh_a, proof=nonce)

    def test_zero_length_is_validation_error(self, registry, other, subject, mh_a):
        with pytest.raises(ValidationError):
            registry.create(other, subject, mh_a.digest, mh_a.hash_function, 0, proof=1)
        assert registry.events == ()

    def test_first_writer_wins(self, created, deployer, other, subject, mh_b):
        with pytest.raises(AuthorizationError):
            _create(created, other, subject, mh_b, proof=DEPLOY_NONCE)
        with pytest.raises(AuthorizationError):
            _create(created, deployer, subject, mh_b, proof=DEPLOY_NONCE)
        assert created.get_multihash(subject) == IPFS_HASHES[0]
        assert created.get_delegate(subject) == Delegate.of(deployer)

    def test_create2_proof(self, registry, deployer, mh_a):
        salt = b"\x01" * 32
        code_hash = bytes(Web3.keccak(b"\x60\x80\x60\x40"))
        subject = compute_create2_address(deployer, salt, code_hash)

        _create(registry, deployer, subject, mh_a, proof=(salt, code_hash))
        assert registry.get_deployer(subject) == deployer

    def test_create2_disabled(self, deployer, mh_a):
        registry = MetadataRegistry(RegistryConfig(allow_create2=False))
        salt = b"\x01" * 32
        code_hash = bytes(Web3.keccak(b"\x00"))
        subject = compute_create2_address(deployer, salt, code_hash)

        with pytest.raises(AuthorizationError):
            _create(registry, deployer, subject, mh_a, proof=(salt, code_hash))

    def test_self_attestation_needs_no_proof(self, registry, other, mh_a):
        entry = _create(registry, other, other, mh_a)

        assert entry.self_attested
        assert entry.delegate == Delegate.of(other)
        assert registry.get_deployer(other) is None
        assert registry.get_version(other) == 1

    def test_self_attestation_ignores_proof(self, registry, other, mh_a):
        entry = _create(registry, other, other, mh_a, proof=123)
        assert entry.self_attested

    def test_self_attestation_disabled(self, other, mh_a):
        registry = MetadataRegistry(RegistryConfig(allow_self_attestation=False))
        with pytest.raises(AuthorizationError):
            _create(registry, other, other, mh_a)

    def test_addresses_are_normalized(self, registry, deployer, subject, mh_a):
        _create(registry, deployer.lower(), subject.lower(), mh_a, proof=DEPLOY_NONCE)
        assert registry.get_deployer(subject) == deployer
        assert registry.has_entry(subject.lower())

    def test_malformed_address(self, registry, deployer, mh_a):
        with pytest.raises(ValidationError):
            _create(registry, deployer, "0x1234", mh_a, proof=0)

    def test_digest_above_configured_maximum(self, other, mh_a):
        registry = MetadataRegistry(RegistryConfig(max_digest_size=20))
        with pytest.raises(ValidationError):
            _create(registry, other, other, mh_a)


# =============================================================================
# R2. update / clear
# =============================================================================

class TestUpdateAndClear:

    def test_update_requires_existing_entry(self, registry, deployer, subject, mh_a):
        with pytest.raises(NotFoundError):
            _update(registry, deployer, subject, mh_a)

    def test_delegate_updates_without_proof(self, created, deployer, subject, mh_b):
        _update(created, deployer, subject, mh_b)
        assert created.get_multihash(subject) == IPFS_HASHES[1]
        assert created.get_version(subject) == 2

    def test_non_delegate_rejected(self, created, deployer, other, subject, mh_b):
        with pytest.raises(AuthorizationError):
            _update(created, other, subject, mh_b)
        assert created.get_multihash(subject) == IPFS_HASHES[0]
        assert created.get_delegate(subject) == Delegate.of(deployer)
        assert created.get_version(subject) == 1

    def test_subject_may_always_update(self, created, subject, mh_b):
        entry = _update(created, subject, subject, mh_b)
        assert entry.self_attested
        assert entry.delegate == Delegate.of(subject)
        assert created.get_record(subject).self_attested

    def test_version_accounting(self, registry, deployer, subject, mh_a, mh_b):
        versions = []
        _create(registry, deployer, subject, mh_a, proof=DEPLOY_NONCE)
        versions.append(registry.get_version(subject))
        _update(registry, deployer, subject, mh_b)
        versions.append(registry.get_version(subject))
        _update(registry, deployer, subject, mh_a)
        versions.append(registry.get_version(subject))
        remaining = registry.clear(deployer, subject)
        versions.append(registry.get_version(subject))

        assert versions == [1, 2, 3, 2]
        assert remaining == 2
        assert registry.get_entry(subject) is None
        assert registry.get_multihash(subject) is None
        assert registry.get_delegate(subject).is_unset

    def test_clear_absent(self, registry, deployer, subject):
        with pytest.raises(NotFoundError):
            registry.clear(deployer, subject)

    def test_clear_by_non_delegate(self, created, other, subject):
        with pytest.raises(AuthorizationError):
            created.clear(other, subject)
        assert created.has_entry(subject)

    def test_recreate_after_clear(self, created, deployer, subject, mh_b):
        created.clear(deployer, subject)
        _create(created, deployer, subject, mh_b, proof=DEPLOY_NONCE)
        assert created.get_multihash(subject) == IPFS_HASHES[1]
        assert created.get_version(subject) == 1
        assert created.get_deployer(subject) == deployer

    def test_clear_emits_remaining_version(self, created, deployer, subject):
        created.clear(deployer, subject)
        event, data = created.events[-1]
        assert event is RegistryEvent.ENTRY_DELETED
        assert data.subject == subject
        assert data.version == 0


# =============================================================================
# R3. Delegation
# =============================================================================

class TestDelegation:

    def test_transfer_to_identity(self, created, deployer, other, subject, mh_b):
        created.transfer_delegate(deployer, subject, other)

        assert created.get_delegate(subject) == Delegate.of(other)
        assert created.get_version(subject) == 1
        with pytest.raises(AuthorizationError):
            _update(created, deployer, subject, mh_b)
        _update(created, other, subject, mh_b)
        assert created.get_multihash(subject) == IPFS_HASHES[1]

    def test_transfer_requires_entry(self, registry, deployer, other, subject):
        with pytest.raises(NotFoundError):
            registry.transfer_delegate(deployer, subject, other)

    def test_transfer_requires_delegate(self, created, other, stranger, subject):
        with pytest.raises(AuthorizationError):
            created.transfer_delegate(stranger, subject, other)

    def test_transfer_to_unset_rejected(self, created, deployer, subject):
        with pytest.raises(ValidationError):
            created.transfer_delegate(deployer, subject, None)

    def test_public_delegate_is_locked(self, created, deployer, other, stranger, subject, mh_b):
        created.transfer_delegate(deployer, subject, "public")
        assert created.get_delegate(subject).kind is DelegateKind.PUBLIC

        for caller in (deployer, stranger, subject):
            with pytest.raises(SentinelLockError):
                created.transfer_delegate(caller, subject, other)
        with pytest.raises(SentinelLockError):
            created.transfer_delegate(deployer, subject, Delegate.public())

        _update(created, stranger, subject, mh_b)
        _update(created, other, subject, mh_b)
        assert created.get_delegate(subject).is_public
        assert created.get_version(subject) == 3

    def test_anyone_may_clear_public_entry(self, created, deployer, stranger, subject):
        created.transfer_delegate(deployer, subject, Delegate.public())
        created.clear(stranger, subject)
        assert not created.has_entry(subject)

    def test_delegate_changed_event(self, created, deployer, other, subject):
        created.transfer_delegate(deployer, subject, other)
        event, data = created.events[-1]
        assert event is RegistryEvent.DELEGATE_CHANGED
        assert data.delegate == Delegate.of(other)
        assert data.category == DEFAULT_CATEGORY


# =============================================================================
# R4. Categories
# =============================================================================

class TestCategories:

    def test_category_gating(self, created, deployer, other, stranger, subject, mh_a, mh_b):
        audits = Category.from_label("audits")

        with pytest.raises(PermissionDeniedError):
            _update(created, deployer, subject, mh_b, audits)

        created.add_category(deployer, subject, audits)
        assert created.get_category_approval(subject, audits)

        with pytest.raises(AuthorizationError):
            _update(created, other, subject, mh_b, audits)

        _update(created, deployer, subject, mh_b, audits)
        assert created.get_multihash(subject, audits) == IPFS_HASHES[1]
        assert created.get_version(subject, audits) == 1

        created.transfer_delegate(deployer, subject, "public", audits)
        _update(created, stranger, subject, mh_a, audits)
        assert created.get_version(subject, audits) == 2

        created.remove_category(deployer, subject, audits)
        assert created.get_entry(subject, audits) is None
        assert created.get_version(subject, audits) == 1
        assert not created.get_category_approval(subject, audits)

        with pytest.raises(PermissionDeniedError):
            _update(created, stranger, subject, mh_a, audits)

        # default entry untouched
        assert created.get_multihash(subject) == IPFS_HASHES[0]
        assert created.get_version(subject) == 1

    def test_labels_and_ids_name_the_same_category(self, created, deployer, subject, mh_b):
        created.add_category(deployer, subject, "docs")
        docs = Category.from_label("docs")
        assert created.get_category_approval(subject, docs.key)
        _update(created, deployer, subject, mh_b, docs.key)
        assert created.get_multihash(subject, "docs") == IPFS_HASHES[1]

    def test_hex_string_names_the_id(self, created, deployer, subject):
        audits = Category.from_label("audits")
        created.add_category(deployer, subject, "0x" + audits.key.hex())
        assert created.get_category_approval(subject, audits.key)
        assert created.get_category_approval(subject, "audits")
        with pytest.raises(ValidationError):
            created.add_category(deployer, subject, "0x" + "zz" * 32)

    def test_category_management_standing(self, created, other, subject):
        with pytest.raises(PermissionDeniedError):
            created.add_category(other, subject, "audits")
        assert not created.get_category_approval(subject, "audits")

    def test_subject_manages_own_categories(self, registry, other, mh_a):
        registry.add_category(other, other, "profile")
        _update(registry, other, other, mh_a, "profile")
        assert registry.get_record(other, "profile").self_attested
        registry.remove_category(other, other, "profile")
        assert not registry.has_entry(other, "profile")

    def test_default_category_is_reserved(self, created, deployer, subject):
        for category in (None, DEFAULT_CATEGORY, bytes(32)):
            with pytest.raises(ValidationError):
                created.add_category(deployer, subject, category)
            with pytest.raises(ValidationError):
                created.remove_category(deployer, subject, category)

    def test_state_must_change(self, created, deployer, subject):
        with pytest.raises(ValidationError):
            created.remove_category(deployer, subject, "audits")
        created.add_category(deployer, subject, "audits")
        with pytest.raises(ValidationError):
            created.add_category(deployer, subject, "audits")

    def test_remove_category_events(self, created, deployer, subject, mh_b):
        created.add_category(deployer, subject, "audits")
        _update(created, deployer, subject, mh_b, "audits")
        created.remove_category(deployer, subject, "audits")

        kinds = [event for event, _ in created.events[-2:]]
        assert kinds == [RegistryEvent.ENTRY_DELETED, RegistryEvent.CATEGORY_DELETED]

    def test_remove_empty_category_emits_only_deletion(self, created, deployer, subject):
        created.add_category(deployer, subject, "audits")
        before = len(created.events)
        created.remove_category(deployer, subject, "audits")
        assert [e for e, _ in created.events[before:]] == [RegistryEvent.CATEGORY_DELETED]

    def test_clear_in_category(self, created, deployer, subject, mh_b):
        created.add_category(deployer, subject, "audits")
        _update(created, deployer, subject, mh_b, "audits")
        assert created.clear(deployer, subject, "audits") == 0
        assert created.get_version(subject) == 1
        assert created.get_category_approval(subject, "audits")


# =============================================================================
# R5. Notifications and helpers
# =============================================================================

class TestNotifications:

    def test_one_event_per_operation(self, registry, deployer, other, subject, mh_a, mh_b):
        _create(registry, deployer, subject, mh_a, proof=DEPLOY_NONCE)
        _update(registry, deployer, subject, mh_b)
        registry.transfer_delegate(deployer, subject, other)
        registry.add_category(deployer, subject, "audits")
        registry.remove_category(deployer, subject, "audits")
        registry.clear(other, subject)

        assert [event for event, _ in registry.events] == [
            RegistryEvent.ENTRY_SET,
            RegistryEvent.ENTRY_SET,
            RegistryEvent.DELEGATE_CHANGED,
            RegistryEvent.CATEGORY_ADDED,
            RegistryEvent.CATEGORY_DELETED,
            RegistryEvent.ENTRY_DELETED,
        ]

    def test_entry_set_carries_post_state(self, created, deployer, subject, mh_a):
        event, data = created.events[0]
        assert event is RegistryEvent.ENTRY_SET
        assert data.subject == subject
        assert data.delegate == Delegate.of(deployer)
        assert data.digest == mh_a.digest
        assert data.hash_function == mh_a.hash_function
        assert data.length == mh_a.length

    def test_handlers(self, registry, other, mh_a, mh_b):
        seen = []

        def handler(event, data):
            seen.append((event, data.subject))

        registry.on(RegistryEvent.ENTRY_SET, handler)
        _create(registry, other, other, mh_a)
        registry.off(RegistryEvent.ENTRY_SET, handler)
        _update(registry, other, other, mh_b)

        assert seen == [(RegistryEvent.ENTRY_SET, other)]

    def test_failing_handler_does_not_undo_operation(self, registry, other, mh_a):
        def broken(event, data):
            raise RuntimeError("indexer down")

        registry.on(RegistryEvent.ENTRY_SET, broken)
        _create(registry, other, other, mh_a)
        assert registry.has_entry(other)
        assert len(registry.events) == 1

    def test_rejected_operations_emit_nothing(self, created, other, subject, mh_b):
        before = created.events
        with pytest.raises(AuthorizationError):
            _update(created, other, subject, mh_b)
        with pytest.raises(AuthorizationError):
            created.clear(other, subject)
        assert created.events == before

    def test_rejections_are_logged(self, created, deployer, subject, caplog):
        with caplog.at_level(logging.WARNING, logger="metadata-registry"):
            with pytest.raises(ValidationError):
                created.transfer_delegate(deployer, subject, Delegate.unset())
            with pytest.raises(ValidationError):
                created.remove_category(deployer, subject, "audits")
            created.add_category(deployer, subject, "audits")
            with pytest.raises(ValidationError):
                created.add_category(deployer, subject, "audits")
        rejected = [r for r in caplog.records if r.getMessage().startswith("Rejected:")]
        assert len(rejected) == 3
        assert all(r.levelno == logging.WARNING for r in rejected)

    def test_base58_helpers(self, registry, deployer, subject):
        registry.create_from_multihash(deployer, subject, IPFS_HASHES[0], proof=DEPLOY_NONCE)
        registry.update_from_multihash(deployer, subject, IPFS_HASHES[1])
        assert registry.get_multihash(subject) == IPFS_HASHES[1]
        assert registry.get_version(subject) == 2


# =============================================================================
# R6. Self-attestation disabled
# =============================================================================

class TestSelfAttestationDisabled:

    @pytest.fixture
    def strict(self, deployer, subject, mh_a):
        registry = MetadataRegistry(RegistryConfig(allow_self_attestation=False))
        _create(registry, deployer, subject, mh_a, proof=DEPLOY_NONCE)
        return registry

    def test_subject_cannot_update(self, strict, subject, mh_b):
        with pytest.raises(AuthorizationError):
            _update(strict, subject, subject, mh_b)
        assert strict.get_multihash(subject) == IPFS_HASHES[0]

    def test_subject_cannot_clear(self, strict, subject):
        with pytest.raises(AuthorizationError):
            strict.clear(subject, subject)
        assert strict.has_entry(subject)

    def test_subject_cannot_transfer(self, strict, deployer, subject):
        with pytest.raises(AuthorizationError):
            strict.transfer_delegate(subject, subject, subject)
        assert strict.get_delegate(subject) == Delegate.of(deployer)

    def test_subject_cannot_manage_categories(self, strict, deployer, subject):
        with pytest.raises(PermissionDeniedError):
            strict.add_category(subject, subject, "x")
        strict.add_category(deployer, subject, "x")
        with pytest.raises(PermissionDeniedError):
            strict.remove_category(subject, subject, "x")
        assert strict.get_category_approval(subject, "x")

    def test_subject_cannot_open_category(self, strict, deployer, subject, mh_b):
        strict.add_category(deployer, subject, "x")
        with pytest.raises(AuthorizationError):
            _update(strict, subject, subject, mh_b, "x")
        assert not strict.has_entry(subject, "x")

    def test_delegated_subject_is_not_self_attested(self, strict, deployer, subject, mh_b):
        strict.transfer_delegate(deployer, subject, subject)
        entry = _update(strict, subject, subject, mh_b)
        assert not entry.self_attested
        assert entry.delegate == Delegate.of(subject)

    def test_deployer_keeps_its_rights(self, strict, deployer, subject, mh_b):
        entry = _update(strict, deployer, subject, mh_b)
        assert not entry.self_attested
        assert strict.clear(deployer, subject) == 1
