"""
Exposure compensation steps

Compensation is chosen from a fixed symmetric table of third-stop steps
from -3 EV to +3 EV. The stored value is an index into that table.
"""

COMPENSATION_STEPS = tuple(range(-9, 10))
ZERO_STEP_INDEX = COMPENSATION_STEPS.index(0)


def step_to_ev(step):
    """Convert a third-stop step to an EV offset"""
    return step / 3.0


def normalize_index(index):
    """Return index if it addresses the step table, else the zero step"""
    if index is None or index < 0 or index >= len(COMPENSATION_STEPS):
        return ZERO_STEP_INDEX
    return index


def index_for_step(step):
    """Step table index for a step value, clamped to +/-3 EV"""
    step = max(COMPENSATION_STEPS[0], min(step, COMPENSATION_STEPS[-1]))
    return COMPENSATION_STEPS.index(step)


def format_step(step):
    """
    Label for a compensation step

    Examples: 0 -> "0", 4 -> "+1 1/3", -2 -> "-2/3", 6 -> "+2"
    """
    if step == 0:
        return "0"
    sign = "+" if step > 0 else "-"
    whole, remainder = divmod(abs(step), 3)

    parts = []
    if whole > 0:
        parts.append(str(whole))
    if remainder > 0:
        parts.append(f"{remainder}/3")
    return sign + " ".join(parts)


def compensation_labels():
    return [format_step(step) for step in COMPENSATION_STEPS]
