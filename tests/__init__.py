"""dynaform test suite.

- test_values.py / test_operators.py: value coercion and the operator table
- test_conditions.py: condition evaluation and the conditions engine
- test_validators.py / test_adapters.py: builtin and external validators
- test_cancellation.py / test_engine.py: the validation engine
- test_form_session.py: the headless form session
- test_schema_loader.py / test_cli.py: schema files and the command line
"""
