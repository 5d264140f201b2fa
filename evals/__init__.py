"""
Evaluation suite -- deterministic evals for the generation pipeline.

Every eval runs against stub stages (evals/stubs.py); no completion service
is contacted.

Run all evals:      pytest evals/ -v
Run one area only:  pytest evals/tasks/test_scoring_evals.py -v
"""
