"""
Weight engine - bounded adaptive weight updates.

Pure integer arithmetic over the 10-slot weight vector. There is no
gradient: a single scalar signal nudges every slot by the learning rate,
and a training vector adds a non-negative, rate-scaled offset per slot.
Every result is clamped to [WEIGHT_MIN, WEIGHT_MAX].
"""

from typing import Sequence

from ..core.errors import invalid_parameters
from ..models.agent import WEIGHT_SLOTS

WEIGHT_MIN = 0
WEIGHT_MAX = 100
INITIAL_WEIGHT = 50

MIN_LEARNING_RATE = 1
MAX_LEARNING_RATE = 20
INITIAL_LEARNING_RATE = 10

# Training signals are shifted by this offset before scaling; a signal
# below -TRAINING_OFFSET has no unsigned representation.
TRAINING_OFFSET = 100
TRAINING_DIVISOR = 200


def clamp_weight(value: int) -> int:
    return max(WEIGHT_MIN, min(WEIGHT_MAX, value))


def initial_weights() -> list[int]:
    return [INITIAL_WEIGHT] * WEIGHT_SLOTS


def _check_vector(weights: Sequence[int]) -> None:
    if len(weights) != WEIGHT_SLOTS:
        raise invalid_parameters(
            f"Weight vector must have {WEIGHT_SLOTS} slots, got {len(weights)}",
            length=len(weights),
        )


def update_neural_weights(weights: Sequence[int], performance: int, rate: int) -> list[int]:
    """
    Nudge every slot by `rate` in the direction of `performance`.

    Args:
        weights: Current 10-slot vector
        performance: Signed realized PnL; only its sign matters
        rate: Learning rate

    Returns:
        New vector; slots move up on positive performance, down otherwise
    """
    _check_vector(weights)
    if performance > 0:
        return [clamp_weight(w + rate) for w in weights]
    return [clamp_weight(w - rate) for w in weights]


def train_neural_network(
    weights: Sequence[int],
    performance_data: Sequence[int],
    rate: int,
) -> list[int]:
    """
    Apply one training step.

    new[i] = clamp(weights[i] + (data[i] + 100) * rate / 200)

    Raises:
        ProtocolError: INVALID_PARAMETERS if the data vector has the wrong
            length or any signal is below -100
    """
    _check_vector(weights)
    if len(performance_data) != WEIGHT_SLOTS:
        raise invalid_parameters(
            f"Performance data must have {WEIGHT_SLOTS} entries, got {len(performance_data)}",
            length=len(performance_data),
        )

    updated = []
    for slot, (weight, signal) in enumerate(zip(weights, performance_data)):
        shifted = signal + TRAINING_OFFSET
        if shifted < 0:
            raise invalid_parameters(
                f"Performance signal {signal} at slot {slot} is below -{TRAINING_OFFSET}",
                slot=slot,
                signal=signal,
            )
        updated.append(clamp_weight(weight + shifted * rate // TRAINING_DIVISOR))
    return updated


def next_learning_rate(rate: int) -> int:
    """Learning rate after a training step, kept within [MIN_LEARNING_RATE, MAX_LEARNING_RATE]"""
    return max(MIN_LEARNING_RATE, min(MAX_LEARNING_RATE, rate + 1))
