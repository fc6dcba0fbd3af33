from replicaop._cogs.helpers import versions


def test_help_in_root(invoke):
    result = invoke(['--help'])
    assert result.exit_code == 0
    assert 'Usage: replicaop [OPTIONS]' in result.stdout
    assert '  run ' in result.stdout
    assert '  reconcile ' in result.stdout


def test_help_in_run(invoke, real_run):
    result = invoke(['run', '--help'])
    assert result.exit_code == 0
    assert not real_run.called
    assert 'Usage: replicaop run [OPTIONS]' in result.stdout
    assert ' --all-namespaces' in result.stdout
    assert ' --namespace' in result.stdout
    assert ' --liveness' in result.stdout
    assert ' --child-name' in result.stdout
    assert ' --image' in result.stdout
    assert ' --port' in result.stdout
    assert ' --status / --no-status' in result.stdout


def test_help_in_reconcile(invoke, real_reconcile):
    result = invoke(['reconcile', '--help'])
    assert result.exit_code == 0
    assert not real_reconcile.called
    assert 'Usage: replicaop reconcile [OPTIONS] NAMESPACE NAME' in result.stdout


def test_version(invoke):
    result = invoke(['--version'])
    assert result.exit_code == 0
    assert result.stdout.startswith(f'replicaop, version {versions.version or "unknown"}')
