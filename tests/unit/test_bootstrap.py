"""Tests for the host installer steps with subprocesses mocked out"""

import json
import stat
from unittest.mock import MagicMock, patch

import click
import pytest

from clawdeploy.errors import CommandError, PrerequisiteError
from clawdeploy.installer import bootstrap
from clawdeploy.installer.token import read_token, write_token

MODULE = "clawdeploy.installer.bootstrap"


@pytest.fixture
def run(completed):
    with patch(f"{MODULE}.run_command", return_value=completed()) as mock:
        yield mock


def commands(mock):
    return [c.args[0] for c in mock.call_args_list]


class TestHostChecks:
    """Root and OS detection"""

    def test_refuses_root(self):
        with patch(f"{MODULE}.os.geteuid", return_value=0):
            with pytest.raises(PrerequisiteError):
                bootstrap.check_root()

    def test_allows_regular_user(self):
        with patch(f"{MODULE}.os.geteuid", return_value=1000):
            bootstrap.check_root()

    def test_detect_os(self, tmp_path):
        release = tmp_path / "os-release"
        release.write_text('NAME="Ubuntu"\nID=ubuntu\nVERSION_ID="24.04"\n# comment\n')

        assert bootstrap.detect_os(release) == {"id": "ubuntu", "version": "24.04"}

    def test_detect_os_missing(self, tmp_path):
        with pytest.raises(PrerequisiteError):
            bootstrap.detect_os(tmp_path / "absent")


class TestPackageSteps:
    """apt, node and npm steps"""

    def test_prerequisites(self, settings, run):
        bootstrap.install_prerequisites(settings)

        cmds = commands(run)
        assert cmds[0] == ["sudo", "apt-get", "update"]
        assert cmds[1][:4] == ["sudo", "apt-get", "install", "-y"]
        assert "nginx" in cmds[1] and "ufw" in cmds[1] and "python3-certbot-nginx" in cmds[1]

    def test_node_already_current(self, settings, run):
        with patch(f"{MODULE}.node_major_version", return_value=22):
            bootstrap.install_nodejs(settings)
        run.assert_not_called()

    def test_node_outdated(self, settings, run):
        with patch(f"{MODULE}.node_major_version", side_effect=[18, 22]):
            bootstrap.install_nodejs(settings)

        cmds = commands(run)
        assert "setup_22.x" in cmds[0][2]
        assert cmds[1] == ["sudo", "apt-get", "install", "-y", "nodejs"]

    def test_node_major_version_parsing(self, completed):
        with patch(f"{MODULE}.which", return_value="/usr/bin/node"), patch(
            f"{MODULE}.run_command", return_value=completed(stdout="v22.11.0\n")
        ):
            assert bootstrap.node_major_version() == 22

    def test_install_gateway(self, settings, run):
        bootstrap.install_gateway(settings)
        assert commands(run)[0] == ["sudo", "npm", "install", "-g", "moltbot@latest"]

    def test_swap_skipped_when_present(self, settings, run, tmp_path):
        swapfile = tmp_path / "swapfile"
        swapfile.write_text("")
        settings["swap"]["path"] = str(swapfile)

        bootstrap.setup_swap(settings)
        run.assert_not_called()


class TestGatewayToken:
    """Token step on first run and re-run"""

    def test_first_run_creates(self, settings, home):
        token = bootstrap.generate_gateway_token(settings)
        assert read_token(home / ".moltbot_gateway_token") == token

    def test_rerun_keeps_token(self, settings, home):
        path = home / ".moltbot_gateway_token"
        write_token(path, "ab" * 32)

        assert bootstrap.generate_gateway_token(settings) == "ab" * 32
        assert read_token(path) == "ab" * 32

    def test_rotate(self, settings, home):
        write_token(home / ".moltbot_gateway_token", "ab" * 32)
        assert bootstrap.generate_gateway_token(settings, rotate=True) != "ab" * 32


class TestNginxAndFirewall:
    """Proxy site and ufw rules"""

    def test_configure_nginx_with_domain(self, settings, run):
        settings["nginx"]["domain"] = "chat.example.com"

        with patch(f"{MODULE}.write_root_file") as write:
            bootstrap.configure_nginx(settings)

        path, text = write.call_args.args
        assert str(path) == "/etc/nginx/sites-available/moltbot.conf"
        assert "server_name chat.example.com;" in text

        cmds = commands(run)
        assert ["sudo", "rm", "-f", "/etc/nginx/sites-enabled/default"] in cmds
        assert [
            "sudo",
            "ln",
            "-sf",
            "/etc/nginx/sites-available/moltbot.conf",
            "/etc/nginx/sites-enabled/moltbot.conf",
        ] in cmds
        assert cmds.index(["sudo", "nginx", "-t"]) < cmds.index(["sudo", "systemctl", "reload", "nginx"])

    def test_configure_nginx_without_domain(self, settings, run):
        with patch(f"{MODULE}.write_root_file") as write, patch(f"{MODULE}.primary_ip", return_value="10.0.0.5"):
            bootstrap.configure_nginx(settings)

        assert "server_name _;" in write.call_args.args[1]

    def test_malformed_domain_rejected(self, settings, run):
        settings["nginx"]["domain"] = "a.example; listen 9999"

        with patch(f"{MODULE}.write_root_file") as write:
            with pytest.raises(PrerequisiteError):
                bootstrap.configure_nginx(settings)

        write.assert_not_called()
        run.assert_not_called()

    def test_config_test_failure_aborts(self, settings, completed):
        def fake(cmd, **kwargs):
            if cmd == ["sudo", "nginx", "-t"]:
                raise CommandError(cmd, 1, "syntax error")
            return completed()

        with patch(f"{MODULE}.write_root_file"), patch(f"{MODULE}.primary_ip", return_value="x"), patch(
            f"{MODULE}.run_command", side_effect=fake
        ) as run:
            with pytest.raises(CommandError):
                bootstrap.configure_nginx(settings)

        assert ["sudo", "systemctl", "reload", "nginx"] not in commands(run)

    def test_firewall(self, settings, run):
        bootstrap.configure_firewall(settings)

        cmds = commands(run)
        assert ["sudo", "ufw", "allow", "OpenSSH"] in cmds
        assert ["sudo", "ufw", "allow", "Nginx Full"] in cmds
        assert ["sudo", "ufw", "allow", "8000/tcp"] in cmds
        assert ["sudo", "ufw", "--force", "enable"] in cmds


class TestGatewayFiles:
    """JSON config and systemd unit"""

    def test_gateway_config(self, settings, home):
        token = "ab" * 32
        path = bootstrap.create_gateway_config(settings, token)

        assert path == home / ".clawdbot" / "clawdbot.json"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert json.loads(path.read_text())["gateway"]["auth"]["token"] == token
        assert (home / "clawd").is_dir()

    def test_systemd_service(self, settings, home, run):
        token = "cd" * 32
        with patch(f"{MODULE}.which", return_value="/usr/local/bin/moltbot"):
            path = bootstrap.create_systemd_service(settings, token)

        assert path == home / ".config" / "systemd" / "user" / "moltbot-gateway.service"
        unit = path.read_text()
        assert f'Environment="CLAWDBOT_GATEWAY_TOKEN={token}"' in unit
        assert "ExecStart=/usr/local/bin/moltbot gateway" in unit
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

        cmds = commands(run)
        assert ["systemctl", "--user", "daemon-reload"] in cmds
        assert ["systemctl", "--user", "enable", "moltbot-gateway"] in cmds

    def test_systemd_service_needs_binary(self, settings, run):
        with patch(f"{MODULE}.which", return_value=None):
            with pytest.raises(PrerequisiteError):
                bootstrap.create_systemd_service(settings, "ab" * 32)


class TestOptionalSteps:
    """Docker, SSL and onboarding"""

    def test_docker_already_installed(self, settings, run):
        with patch(f"{MODULE}.which", return_value="/usr/bin/docker"):
            bootstrap.install_docker(settings)
        run.assert_not_called()

    def test_ssl_skipped_without_domain(self, settings, run):
        bootstrap.setup_ssl(settings)
        run.assert_not_called()

    def test_ssl_default_email(self, settings, run):
        settings["nginx"]["domain"] = "chat.example.com"
        bootstrap.setup_ssl(settings)

        certbot = commands(run)[-1]
        assert certbot[:3] == ["sudo", "certbot", "--nginx"]
        assert certbot[certbot.index("-d") + 1] == "chat.example.com"
        assert certbot[certbot.index("--email") + 1] == "admin@chat.example.com"

    def test_ssl_configured_email(self, settings, run):
        settings["nginx"]["domain"] = "chat.example.com"
        settings["ssl"]["email"] = "ops@example.com"
        bootstrap.setup_ssl(settings)

        certbot = commands(run)[-1]
        assert certbot[certbot.index("--email") + 1] == "ops@example.com"

    def test_onboarding_failure_ignored(self, settings, completed):
        with patch(f"{MODULE}.click.prompt", return_value=""), patch(
            f"{MODULE}.run_command", return_value=completed(returncode=2)
        ) as run:
            bootstrap.run_onboarding(settings, "ab" * 32)

        assert commands(run)[0] == ["moltbot", "onboard", "--no-install-daemon"]
        assert run.call_args.kwargs["check"] is False

    def test_onboarding_skipped_on_interrupt(self, settings, run):
        with patch(f"{MODULE}.click.prompt", side_effect=click.Abort()):
            bootstrap.run_onboarding(settings, "ab" * 32)

        run.assert_not_called()

    def test_ssl_rejects_malformed_domain(self, settings, run):
        settings["nginx"]["domain"] = "a.example; listen 9999"
        with pytest.raises(PrerequisiteError):
            bootstrap.setup_ssl(settings)

        run.assert_not_called()


class TestFullInstall:
    """Step sequencing"""

    STEPS = [
        "install_prerequisites",
        "install_nodejs",
        "setup_swap",
        "install_gateway",
        "configure_nginx",
        "configure_firewall",
        "create_gateway_config",
        "create_systemd_service",
        "install_docker",
        "setup_ssl",
        "run_onboarding",
        "print_summary",
    ]

    def _patched(self, **overrides):
        mocks = {name: MagicMock() for name in self.STEPS}
        mocks["check_root"] = MagicMock()
        mocks["detect_os"] = MagicMock(return_value={"id": "ubuntu", "version": "24.04"})
        mocks["generate_gateway_token"] = MagicMock(return_value="ab" * 32)
        mocks.update(overrides)
        return mocks

    def test_token_flows_to_config_and_unit(self, settings):
        mocks = self._patched()
        with patch.multiple(MODULE, **mocks):
            assert bootstrap.full_install(settings, assume_yes=True, docker=False, onboard=False)

        mocks["create_gateway_config"].assert_called_once_with(settings, "ab" * 32)
        mocks["create_systemd_service"].assert_called_once_with(settings, "ab" * 32)
        mocks["install_docker"].assert_not_called()
        mocks["run_onboarding"].assert_not_called()
        mocks["setup_ssl"].assert_not_called()
        mocks["print_summary"].assert_called_once_with(settings, "ab" * 32)

    def test_rotate_flag_passed(self, settings):
        mocks = self._patched()
        with patch.multiple(MODULE, **mocks):
            bootstrap.full_install(settings, assume_yes=True, rotate_token=True, onboard=False)

        mocks["generate_gateway_token"].assert_called_once_with(settings, rotate=True)

    def test_stops_at_first_failure(self, settings):
        mocks = self._patched(install_nodejs=MagicMock(side_effect=CommandError(["node"], 1)))
        with patch.multiple(MODULE, **mocks):
            assert not bootstrap.full_install(settings, assume_yes=True)

        mocks["install_prerequisites"].assert_called_once()
        mocks["setup_swap"].assert_not_called()
        mocks["generate_gateway_token"].assert_not_called()
        mocks["print_summary"].assert_not_called()

    def test_root_refused(self, settings):
        mocks = self._patched(check_root=MagicMock(side_effect=PrerequisiteError("root")))
        with patch.multiple(MODULE, **mocks):
            assert not bootstrap.full_install(settings, assume_yes=True)

        mocks["install_prerequisites"].assert_not_called()

    def test_malformed_domain_stops_before_any_step(self, settings):
        settings["nginx"]["domain"] = "bad domain"
        mocks = self._patched()
        with patch.multiple(MODULE, **mocks):
            assert not bootstrap.full_install(settings, assume_yes=True)

        mocks["install_prerequisites"].assert_not_called()

    def test_ssl_requested_with_domain(self, settings):
        settings["nginx"]["domain"] = "chat.example.com"
        mocks = self._patched()
        with patch.multiple(MODULE, **mocks):
            bootstrap.full_install(settings, assume_yes=True, onboard=False)

        mocks["setup_ssl"].assert_called_once_with(settings)

    def test_declined(self, settings):
        mocks = self._patched()
        with patch.multiple(MODULE, **mocks), patch(f"{MODULE}.click.confirm", return_value=False):
            assert bootstrap.full_install(settings)

        mocks["install_prerequisites"].assert_not_called()

    def test_optional_steps_prompted(self, settings):
        mocks = self._patched()
        answers = iter([True, True, False])
        with patch.multiple(MODULE, **mocks), patch(
            f"{MODULE}.click.confirm", side_effect=lambda *a, **kw: next(answers)
        ):
            assert bootstrap.full_install(settings)

        mocks["install_docker"].assert_called_once_with(settings)
        mocks["run_onboarding"].assert_not_called()
