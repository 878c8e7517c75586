import logging
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from managed_disk_sample import cli
from managed_disk_sample.cli import SubscriptionNotFoundError, resolve_subscription_id, setup_logging
from managed_disk_sample.sample import SampleResult


def test_explicit_subscription_wins(isolated_env, monkeypatch):
    monkeypatch.setenv('AZURE_SUBSCRIPTION_ID', 'from-env')

    assert resolve_subscription_id('explicit') == 'explicit'


def test_subscription_from_environment(isolated_env, monkeypatch):
    monkeypatch.setenv('AZURE_SUBSCRIPTION_ID', 'from-env')

    with patch('managed_disk_sample.cli.subprocess.run') as run:
        assert resolve_subscription_id() == 'from-env'
    run.assert_not_called()


def test_subscription_from_az_cli(isolated_env):
    completed = subprocess.CompletedProcess(args=[], returncode=0, stdout='from-cli\n')
    with patch('managed_disk_sample.cli.subprocess.run', return_value=completed) as run:
        assert resolve_subscription_id() == 'from-cli'
    assert run.call_args[0][0][:3] == ['az', 'account', 'show']


def test_subscription_missing(isolated_env):
    with patch('managed_disk_sample.cli.subprocess.run', side_effect=FileNotFoundError('az')):
        with pytest.raises(SubscriptionNotFoundError):
            resolve_subscription_id()


def test_main_wires_overrides_into_sample(isolated_env):
    credential = MagicMock()
    result = SampleResult(succeeded=True, resource_group_id='/rg', vm_id='/vm', cleaned_up=True)

    with patch.object(cli, 'AzureClients') as clients_cls, \
            patch.object(cli, 'ManagedDiskSample') as sample_cls:
        sample_cls.return_value.run.return_value = result
        exit_code = cli.main(['--subscription-id', 'sub-1', '--location', 'westus2',
                              '--admin-username', 'opsuser', '--admin-password', 'Str0ng!Pass'],
                             credential=credential)

    assert exit_code == 0
    clients_cls.create.assert_called_once_with('sub-1', credential)
    config = sample_cls.call_args[0][1]
    assert config.location == 'westus2'
    assert config.resource_group_location == 'southcentralus'
    assert config.admin_username == 'opsuser'
    sample_cls.return_value.run.assert_called_once_with()


def test_main_exits_normally_when_sample_fails(isolated_env, capsys):
    result = SampleResult(succeeded=False, resource_group_id='/rg', cleaned_up=False,
                          error=RuntimeError('boom'))

    with patch.object(cli, 'AzureClients'), patch.object(cli, 'ManagedDiskSample') as sample_cls:
        sample_cls.return_value.run.return_value = result
        exit_code = cli.main(['--subscription-id', 'sub-1'], credential=MagicMock())

    assert exit_code == 0
    output = capsys.readouterr().out
    assert 'boom' in output
    assert 'manual deletion: /rg' in output


def test_main_reports_missing_subscription(isolated_env, capsys):
    with patch.object(cli, 'resolve_subscription_id', side_effect=SubscriptionNotFoundError('no sub')), \
            patch.object(cli, 'ManagedDiskSample') as sample_cls:
        exit_code = cli.main([], credential=MagicMock())

    assert exit_code == 1
    sample_cls.assert_not_called()
    assert 'no sub' in capsys.readouterr().out


def test_setup_logging_quiets_sdk_loggers():
    setup_logging()

    assert logging.getLogger('azure').level == logging.WARNING
    assert logging.getLogger('azure.identity').level == logging.WARNING
    assert logging.getLogger('urllib3').level == logging.WARNING


def test_main_reports_malformed_config(isolated_env, capsys):
    (isolated_env / 'config.yaml').write_text("data_disks: [{name: d, size_gb: big}]\n")

    with patch.object(cli, 'ManagedDiskSample') as sample_cls:
        exit_code = cli.main(['--subscription-id', 'sub-1'], credential=MagicMock())

    assert exit_code == 1
    sample_cls.assert_not_called()
    assert 'non-numeric size' in capsys.readouterr().out
