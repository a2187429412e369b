"""Review engine core: state machine, annotations, timeline and notifications."""
