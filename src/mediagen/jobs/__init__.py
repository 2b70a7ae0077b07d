"""Generation jobs: state machine, persistence and HTTP surface."""
