import random

from derbybot.coinflip import HEADS, TAILS, CoinFlipManager, other_side
from derbybot.intents import Intent
from derbybot.state import Player


CHAT = -2002
ANNA = Player(1, "Anna", "anna")
BORIS = Player(2, "Boris", "boris")
VERA = Player(3, "Vera", "vera")


class FixedRandom:
    def __init__(self, result):
        self.result = result

    def choice(self, options):
        return self.result


def make_manager(result=HEADS, forced=None, clock=lambda: 0.0):
    return CoinFlipManager(rng=FixedRandom(result), clock=clock, challenge_ttl=300, forced_outcomes=forced or {})


def test_other_side():
    assert other_side(HEADS) == TAILS
    assert other_side(TAILS) == HEADS


def test_caller_wins_on_matching_side():
    manager = make_manager(result=HEADS)
    assert manager.open_challenge(CHAT, ANNA).ok
    outcome = manager.call(CHAT, BORIS, HEADS)
    assert outcome.winner == BORIS and outcome.loser == ANNA
    assert outcome.result == HEADS
    assert outcome.calls == {BORIS.user_id: HEADS, ANNA.user_id: TAILS}
    assert manager.live_challenge(CHAT) is None


def test_challenger_wins_on_other_side():
    manager = make_manager(result=TAILS)
    manager.open_challenge(CHAT, ANNA)
    outcome = manager.handle(CHAT, BORIS, Intent.COIN_HEADS)
    assert outcome.winner == ANNA


def test_challenger_cannot_call_own_flip():
    manager = make_manager()
    manager.open_challenge(CHAT, ANNA)
    outcome = manager.call(CHAT, ANNA, HEADS)
    assert not outcome.ok and not outcome.finished
    assert manager.live_challenge(CHAT) is not None


def test_targeted_flip():
    manager = make_manager()
    manager.open_challenge(CHAT, ANNA, "vera")
    assert not manager.call(CHAT, BORIS, TAILS).ok
    assert manager.call(CHAT, VERA, TAILS).finished


def test_one_flip_per_chat():
    manager = make_manager()
    manager.open_challenge(CHAT, ANNA)
    assert not manager.open_challenge(CHAT, BORIS).ok
    assert manager.open_challenge(CHAT + 1, BORIS).ok


def test_withdraw_only_by_challenger():
    manager = make_manager()
    manager.open_challenge(CHAT, ANNA)
    assert not manager.withdraw(CHAT, BORIS).ok
    assert manager.withdraw(CHAT, ANNA).ok
    assert manager.available_intents(CHAT) == frozenset()


def test_call_without_challenge_is_ignored():
    outcome = make_manager().call(CHAT, BORIS, HEADS)
    assert not outcome.ok and outcome.message == ""


def test_expired_flip_is_dropped():
    now = [0.0]
    manager = make_manager(clock=lambda: now[0])
    manager.open_challenge(CHAT, ANNA)
    now[0] = 301.0
    assert not manager.call(CHAT, BORIS, HEADS).ok
    assert manager.open_challenge(CHAT, BORIS).ok


def test_forced_outcomes():
    manager = make_manager(result=HEADS, forced={"boris": "lose"})
    manager.open_challenge(CHAT, ANNA)
    assert manager.call(CHAT, BORIS, HEADS).winner == ANNA

    manager = make_manager(result=HEADS, forced={"anna": "win"})
    manager.open_challenge(CHAT, ANNA)
    assert manager.call(CHAT, BORIS, HEADS).winner == ANNA


def test_fair_coin_distribution():
    manager = CoinFlipManager(rng=random.Random(7), clock=lambda: 0.0, forced_outcomes={})
    heads = 0
    for _ in range(2000):
        manager.open_challenge(CHAT, ANNA)
        if manager.call(CHAT, BORIS, HEADS).result == HEADS:
            heads += 1
    assert 900 < heads < 1100
