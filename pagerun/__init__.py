"""Run pipeline: collect, evaluate, score, and assemble page audit reports."""
