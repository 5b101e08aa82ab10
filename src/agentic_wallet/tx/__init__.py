"""Transaction pipeline: build, simulate, sign, submit/confirm."""
