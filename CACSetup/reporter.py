"""
This module implements the outcome reporter, which summarizes a provisioning
run once every target has been processed: one status line per enabled target,
the location of the run log, the instructions for checking the PKCS#11 module
in each browser and the command that lets the operator diagnose the reader.
"""


from CACSetup import logger
from CACSetup.enums import TargetKind, TargetStatus
from CACSetup.models.plan import ProvisioningPlan

BROWSER_SETTINGS = {
    TargetKind.firefox: "Settings > Privacy & Security > Security Devices",
    TargetKind.chrome: "Settings > Privacy and Security > Manage "
                       "Certificates",
}


class OutcomeReporter:
    """
    Builds and logs the final summary of a run.
    """

    def __init__(self, module_name: str):
        self.module_name = module_name

    @staticmethod
    def status_lines(plan: ProvisioningPlan) -> list:
        lines = []
        for t in plan.enabled_targets():
            browser = t.kind.value.capitalize()
            if t.status == TargetStatus.configured:
                line = f"{browser} configured at {t.path}"
                if t.failed_imports:
                    line += f" ({len(t.failed_imports)} certificates not " \
                            f"imported: {', '.join(t.failed_imports)})"
            elif t.status == TargetStatus.failed:
                line = f"{browser} FAILED at {t.path}: {t.error}"
            else:
                line = f"{browser} not configured ({t.status.value}) at " \
                       f"{t.path}"
            lines.append(line)
        return lines

    def instructions(self, plan: ProvisioningPlan) -> list:
        library = plan.provider.path if plan.provider else "<library>"
        lines = ["To test in Firefox/Chrome:",
                 "1. Ensure the CAC reader is plugged in and the CAC card is "
                 "inserted."]
        settings = [f"{BROWSER_SETTINGS[t.kind]} "
                    f"({t.kind.value.capitalize()})"
                    for t in plan.enabled_targets()] or \
            [f"{v} ({k.value.capitalize()})"
             for k, v in BROWSER_SETTINGS.items()]
        lines.append(f"2. Open the browser and go to {' or '.join(settings)}.")
        lines.append(f"3. Verify '{self.module_name}' is listed. If not, load "
                     f"it with path {library}.")
        lines.append(f"To debug: pkcs11-tool --module {library} --list-slots")
        return lines

    def report(self, plan: ProvisioningPlan) -> list:
        """
        Logs the summary of the run.

        :return: The summary lines in the order they were logged.
        :rtype: list
        """
        lines = ["CAC setup finished with errors." if plan.failed()
                 else "CAC setup complete."]
        lines += self.status_lines(plan)
        if plan.log_path is not None:
            lines.append(f"Debug log: {plan.log_path}")
        lines += self.instructions(plan)
        for line in lines:
            logger.info(line)
        return lines
