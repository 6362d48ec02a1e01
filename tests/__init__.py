"""
macprov Test Suite

- Unit tests for the command, directory, filesystem and policy layers
- Provisioner scenarios against in-memory fakes
- CLI runs through typer's CliRunner
"""
