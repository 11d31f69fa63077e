"""Test suite for the document collaboration workflow.

Unit tests cover the models, the stores and each workflow component in
isolation; integration tests drive whole workflows through the
workspace, the web API and the CLI.  To run the tests, execute
`pytest` from the project root.
"""
