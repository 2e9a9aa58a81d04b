"""End-to-end tests for the CLI main entry point with mocked collaborators."""

from unittest.mock import Mock, patch

from click.testing import CliRunner

from gcp_waste_agent import __version__
from gcp_waste_agent.cli.main import (
    main, EXIT_SUCCESS, EXIT_GENERAL_ERROR, EXIT_CONFIG_ERROR, EXIT_AUTH_ERROR,
    EXIT_SERVICE_ERROR, EXIT_USER_CANCELLED,
)
from gcp_waste_agent.core.config import Config
from gcp_waste_agent.core.exceptions import (
    AuthenticationError, ConfigurationError, GCPWasteAgentError, InventoryPermissionError,
    UserCancelled,
)


def invoke(args, config_exists=True, flow=None):
    """Run the CLI with ConfigManager and InteractiveFlow patched out."""
    runner = CliRunner()
    flow = flow or Mock()
    flow.resolve_config.return_value = Config(project_id="acme-prod-123")

    with patch('gcp_waste_agent.cli.main.ConfigManager') as MockConfigManager, \
         patch('gcp_waste_agent.cli.main.InteractiveFlow') as MockInteractiveFlow:
        mock_config_manager = Mock()
        mock_config_manager.config_exists.return_value = config_exists
        MockConfigManager.return_value = mock_config_manager
        MockInteractiveFlow.return_value = flow

        result = runner.invoke(main, args, env={'GCP_ACCESS_TOKEN': None})

    return result, flow


class TestCLIMainEntryPoint:
    """Test the main CLI entry point with various options and scenarios."""

    def test_first_time_setup_flow(self):
        """No configuration and no --project triggers guided setup."""
        result, flow = invoke([], config_exists=False)

        assert result.exit_code == EXIT_SUCCESS
        flow.setup.assert_called_once()
        flow.run_pipeline.assert_not_called()
        assert "GCP Waste Agent" in result.output
        assert "No project configured" in result.output

    def test_project_flag_skips_setup(self):
        result, flow = invoke(["--project", "acme-prod-123"], config_exists=False)

        assert result.exit_code == EXIT_SUCCESS
        flow.setup.assert_not_called()
        flow.resolve_config.assert_called_once_with("acme-prod-123", None, None)
        flow.run_pipeline.assert_called_once()

    def test_default_run_is_simulated(self):
        result, flow = invoke([])

        assert result.exit_code == EXIT_SUCCESS
        config, options = flow.run_pipeline.call_args.args
        assert config.project_id == "acme-prod-123"
        assert options.mode == "simulated"
        assert options.auto_approve is False
        assert options.token is None

    def test_run_options_are_forwarded(self):
        result, flow = invoke([
            "--mode", "real-api", "--token", "ya29.abc", "--seed", "7", "--auto-approve",
            "--intent", "Cut dev spend.", "--industry", "Retail",
        ])

        assert result.exit_code == EXIT_SUCCESS
        flow.resolve_config.assert_called_once_with(None, "Cut dev spend.", "Retail")
        options = flow.run_pipeline.call_args.args[1]
        assert options.mode == "real-api"
        assert options.token == "ya29.abc"
        assert options.seed == 7
        assert options.auto_approve is True

    def test_inventory_file_is_forwarded(self, tmp_path):
        inventory = tmp_path / "inventory.json"
        inventory.write_text("{}")

        result, flow = invoke(["--mode", "json", "--inventory-file", str(inventory)])

        assert result.exit_code == EXIT_SUCCESS
        assert flow.run_pipeline.call_args.args[1].inventory_file == str(inventory)

    def test_json_mode_requires_file(self):
        result, flow = invoke(["--mode", "json"])

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "--inventory-file is required" in result.output
        flow.run_pipeline.assert_not_called()

    def test_history_flag(self):
        result, flow = invoke(["--history"], config_exists=False)

        assert result.exit_code == EXIT_SUCCESS
        flow.show_history.assert_called_once()
        flow.setup.assert_not_called()

    def test_verify_success(self):
        flow = Mock()
        flow.verify_connection.return_value = True

        result, flow = invoke(["--verify", "--token", "ya29.abc"], flow=flow)

        assert result.exit_code == EXIT_SUCCESS
        flow.verify_connection.assert_called_once_with("acme-prod-123", "ya29.abc")
        flow.run_pipeline.assert_not_called()

    def test_verify_failure_exits_with_auth_error(self):
        flow = Mock()
        flow.verify_connection.return_value = False

        result, _ = invoke(["--verify"], flow=flow)

        assert result.exit_code == EXIT_AUTH_ERROR

    def test_version_option(self):
        result = CliRunner().invoke(main, ["--version"])

        assert result.exit_code == EXIT_SUCCESS
        assert __version__ in result.output

    def test_invalid_mode_rejected(self):
        result = CliRunner().invoke(main, ["--mode", "csv"])
        assert result.exit_code != EXIT_SUCCESS


class TestCLIErrorHandling:
    """Errors raised by the flow map to distinct exit codes."""

    def _fail_with(self, error):
        flow = Mock()
        flow.run_pipeline.side_effect = error
        return invoke([], flow=flow)[0]

    def test_configuration_error(self):
        result = self._fail_with(ConfigurationError("bad project"))

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "Configuration error: bad project" in result.output

    def test_authentication_error(self):
        result = self._fail_with(AuthenticationError("No GCP access token provided"))

        assert result.exit_code == EXIT_AUTH_ERROR
        assert "Authentication error" in result.output

    def test_inventory_error(self):
        result = self._fail_with(InventoryPermissionError("API_DISABLED: The compute API is disabled."))

        assert result.exit_code == EXIT_SERVICE_ERROR
        assert "API_DISABLED" in result.output

    def test_agent_error(self):
        result = self._fail_with(GCPWasteAgentError("Pipeline Failed: boom"))

        assert result.exit_code == EXIT_GENERAL_ERROR
        assert "Pipeline Failed: boom" in result.output

    def test_unexpected_error(self):
        result = self._fail_with(RuntimeError("kaboom"))

        assert result.exit_code == EXIT_GENERAL_ERROR
        assert "Unexpected error: kaboom" in result.output

    def test_user_cancelled(self):
        result = self._fail_with(UserCancelled("Operation cancelled"))

        assert result.exit_code == EXIT_USER_CANCELLED
        assert "cancelled" in result.output

    def test_keyboard_interrupt(self):
        result = self._fail_with(KeyboardInterrupt())
        assert result.exit_code == EXIT_USER_CANCELLED

    def test_resolve_config_error(self):
        flow = Mock()
        flow.resolve_config.side_effect = ConfigurationError("No project configured.")

        result, _ = invoke([], flow=flow)

        assert result.exit_code == EXIT_CONFIG_ERROR
