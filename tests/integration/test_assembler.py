from __future__ import annotations

from fake_chain import FakeChain, addr
from stakeledger.integration.assembler import assemble_position_tree
from stakeledger.state.records import UNKNOWN_REGISTRATION_ORDER


POOL = "0xpool"


def _five_vault_chain():
    chain = FakeChain(epoch=10, max_page=2)
    validators = [addr(i) for i in range(1, 6)]
    for i, a in enumerate(validators):
        chain.add_validator(a, voting_power=100 + i, name=f"v{i}")
    vaults_id = chain.add_pool(POOL, validators=[(a, 10) for a in validators], total_staked=15_000)
    field_ids = []
    for i, a in enumerate(validators):
        field_id, _stakes_id, _ids = chain.add_vault(vaults_id, a, stakes=[(1_000, 2), (2_000, 3 + i)])
        field_ids.append(field_id)
    return chain, validators, field_ids


def test_full_tree_is_assembled() -> None:
    chain, validators, _ = _five_vault_chain()
    tree = assemble_position_tree(chain, POOL, page_size=2, max_workers=3)

    assert tree is not None
    assert tree.complete
    assert tree.skipped == 0
    assert tree.current_epoch == 10
    assert [v.validator_address for v in tree.vaults] == validators
    assert tree.position_count == 10
    assert sum(v.position_principal for v in tree.vaults) == tree.pool.total_staked
    rec = tree.validator(validators[2])
    assert rec.registration_order == 2
    assert rec.voting_power == 102
    assert rec.name == "v2"


def test_positions_are_ordered_by_activation_epoch() -> None:
    chain = FakeChain(epoch=20)
    a = addr(1)
    chain.add_validator(a)
    vaults_id = chain.add_pool(POOL, validators=[(a, 1)])
    chain.add_vault(vaults_id, a, stakes=[(5, 9), (6, 3), (7, 6)])

    tree = assemble_position_tree(chain, POOL)
    assert [p.activation_epoch for p in tree.vaults[0].positions] == [3, 6, 9]


def test_one_failed_vault_is_skipped_not_fatal() -> None:
    chain, validators, field_ids = _five_vault_chain()
    chain.fail_objects.add(field_ids[1])

    tree = assemble_position_tree(chain, POOL, page_size=2)

    assert tree is not None
    assert tree.skipped == 1
    real = [v for v in tree.vaults if not v.synthetic]
    assert len(real) == 4
    assert sum(v.position_principal for v in real) == 4 * 3_000
    # the validator is still registered, so it shows up as a zero vault
    (zero,) = [v for v in tree.vaults if v.synthetic]
    assert zero.validator_address == validators[1]


def test_failed_stake_fetch_counts_one_entry() -> None:
    chain = FakeChain(epoch=10)
    a = addr(1)
    chain.add_validator(a)
    vaults_id = chain.add_pool(POOL, validators=[(a, 1)])
    _field, _stakes, stake_ids = chain.add_vault(vaults_id, a, stakes=[(100, 1), (200, 2), (300, 3)])
    chain.fail_objects.add(stake_ids[1])

    tree = assemble_position_tree(chain, POOL)
    assert tree.skipped == 1
    assert [p.principal for p in tree.vaults[0].positions] == [100, 300]


def test_stakes_table_failure_marks_incomplete() -> None:
    chain = FakeChain(epoch=10)
    a, b = addr(1), addr(2)
    vaults_id = chain.add_pool(POOL, validators=[(a, 1), (b, 1)])
    _f, stakes_a, _ = chain.add_vault(vaults_id, a, stakes=[(100, 1)])
    chain.add_vault(vaults_id, b, stakes=[(200, 1)])
    chain.fail_tables.add(stakes_a)

    tree = assemble_position_tree(chain, POOL)
    assert not tree.complete
    assert tree.vaults[0].positions == ()
    assert tree.vaults[1].position_principal == 200


def test_registered_validator_without_vault_gets_zero_vault() -> None:
    chain = FakeChain(epoch=4)
    a, b = addr(1), addr(2)
    chain.add_validator(a)
    chain.add_validator(b, name="Bravo")
    vaults_id = chain.add_pool(POOL, validators=[(a, 1), (b, 2), (b, 2)])
    chain.add_vault(vaults_id, a, stakes=[(100, 1)])

    tree = assemble_position_tree(chain, POOL)
    assert [v.validator_address for v in tree.vaults] == [a, b]
    assert tree.vaults[1].synthetic
    assert tree.vaults[1].total_staked == 0
    assert tree.validator(b).name == "Bravo"


def test_vault_for_unregistered_validator_sorts_last() -> None:
    chain = FakeChain(epoch=4)
    a, stray = addr(1), addr(9)
    vaults_id = chain.add_pool(POOL, validators=[(a, 1)])
    chain.add_vault(vaults_id, stray, stakes=[(50, 1)])

    tree = assemble_position_tree(chain, POOL)
    assert tree.validator(stray).registration_order == UNKNOWN_REGISTRATION_ORDER


def test_pool_without_vaults_table_is_empty_tree() -> None:
    chain = FakeChain(epoch=7)
    chain.add_pool(POOL, validators=[(addr(1), 1)], with_vaults_table=False)

    tree = assemble_position_tree(chain, POOL)
    assert tree is not None
    assert tree.vaults == ()
    assert tree.current_epoch == 7
    assert chain.count("get_dynamic_fields") == 0


def test_missing_pool_is_none() -> None:
    chain = FakeChain(epoch=1)
    assert assemble_position_tree(chain, "0xnothere") is None


def test_pool_fetch_error_is_none() -> None:
    chain = FakeChain(epoch=1)
    chain.add_pool(POOL)
    chain.fail_objects.add(POOL)
    assert assemble_position_tree(chain, POOL) is None


def test_system_state_failure_is_none() -> None:
    chain = FakeChain(epoch=1)
    chain.add_pool(POOL)
    chain.fail_system_state = True
    assert assemble_position_tree(chain, POOL) is None


# ---------------------------------------------------------------------------
# malformed single entries stay single
# ---------------------------------------------------------------------------

def test_malformed_active_validator_does_not_drop_the_pool() -> None:
    chain = FakeChain(epoch=10)
    a, b = addr(1), addr(2)
    chain.add_validator(a, name="Alpha")
    chain.add_validator(b, name="Bravo")
    chain.active_validators[1]["votingPower"] = "n/a"
    vaults_id = chain.add_pool(POOL, validators=[(a, 1), (b, 1)])
    chain.add_vault(vaults_id, a, stakes=[(100, 1)])
    chain.add_vault(vaults_id, b, stakes=[(200, 1)])

    tree = assemble_position_tree(chain, POOL)

    assert tree is not None
    assert tree.skipped == 1
    assert sum(v.position_principal for v in tree.vaults) == 300
    assert tree.validator(a).name == "Alpha"
    # still registered with the pool, just without network metadata
    assert tree.validator(b).name == "Unknown"
    assert tree.validator(b).registration_order == 1


def test_bad_priority_keeps_rest_of_validator_set() -> None:
    chain = FakeChain(epoch=10)
    a, b, c = addr(1), addr(2), addr(3)
    for v in (a, b, c):
        chain.add_validator(v)
    vaults_id = chain.add_pool(POOL, validators=[(a, 1), (b, 2), (c, 3)])
    pool_fields = chain.objects[POOL].fields
    pool_fields["validator_set"]["fields"]["validators"]["fields"]["contents"][1]["fields"]["value"] = "high"
    chain.add_vault(vaults_id, a, stakes=[(100, 1)])
    chain.add_vault(vaults_id, b, stakes=[(200, 1)])

    tree = assemble_position_tree(chain, POOL)

    assert tree.skipped == 1
    assert [v.validator_address for v in tree.vaults] == [a, b, c]
    assert tree.vaults[2].synthetic
    assert tree.validator(a).registration_order == 0
    assert tree.validator(c).registration_order == 1
    # b still has a vault, so it is kept as an unregistered owner
    assert tree.validator(b).registration_order == UNKNOWN_REGISTRATION_ORDER


def test_non_ascii_digits_in_pool_are_no_data() -> None:
    chain = FakeChain(epoch=10)
    chain.add_pool(POOL, pending="²")
    assert assemble_position_tree(chain, POOL) is None


def test_duplicate_vault_does_not_leak_positions() -> None:
    chain = FakeChain(epoch=10)
    a = addr(1)
    chain.add_validator(a)
    vaults_id = chain.add_pool(POOL, validators=[(a, 1)])
    chain.add_vault(vaults_id, a, stakes=[(1_000, 1)])
    _field, dup_stakes, _ids = chain.add_vault(vaults_id, a, stakes=[(7_000, 1)])

    tree = assemble_position_tree(chain, POOL)

    (vault,) = tree.vaults
    assert vault.total_staked == 1_000
    assert [p.principal for p in vault.positions] == [1_000]
    assert tree.skipped == 1
    assert ("get_dynamic_fields", (dup_stakes, None)) not in chain.calls


def test_epoch_timing_is_carried() -> None:
    chain = FakeChain(epoch=10)
    chain.epoch_start_ms = 1_700_000_000_000
    chain.add_pool(POOL, with_vaults_table=False)

    tree = assemble_position_tree(chain, POOL)
    assert tree.epoch_start_timestamp_ms == 1_700_000_000_000
    assert tree.epoch_duration_ms == 86_400_000
