"""
SSD Optimizer - TRIM scheduling and SSD-friendly kernel settings.

Handles:
- SSD detection (SATA via sysfs, NVMe, lsblk)
- TRIM support, timer state and mount option checks
- SMART health summary
- Manual TRIM and the weekly fstrim.timer
- Optional 'discard' mount option in /etc/fstab
- Writeback sysctl tuning and I/O scheduler udev rules
"""

import logging
import re
from typing import Any, Dict, List, NamedTuple, Sequence, Tuple

from .base import Janitor, ModuleFailed, OperationCancelled
from .templates import SSD_SYSCTL, SSD_UDEV_RULES

logger = logging.getLogger('ubuntu_optimize.maintenance.ssd')

TRIM_FILESYSTEMS = re.compile(r'^(ext[234]|xfs|btrfs)$')
VIRTUAL_DEVICES = ('loop', 'zram', 'ram')
WEAR_ATTRIBUTES = ('Wear_Leveling_Count', 'Media_Wearout_Indicator')

FSTAB = '/etc/fstab'
FSTAB_BACKUP = '/etc/fstab.backup-ubuntu-optimize'
SSD_SYSCTL_PATH = '/etc/sysctl.d/99-ubuntu-optimize-ssd.conf'
SSD_UDEV_PATH = '/etc/udev/rules.d/60-ssd-scheduler.rules'


class Mount(NamedTuple):
    device: str
    target: str
    fstype: str
    options: str


def parse_mounts(text: str) -> List[Mount]:
    """Entries of /proc/mounts (or /etc/mtab)."""
    mounts = []
    for line in text.splitlines():
        fields = line.split()
        if len(fields) >= 4:
            mounts.append(Mount(*fields[:4]))
    return mounts


def add_discard_option(fstab: str, ssds: Sequence[str]) -> Tuple[str, List[str]]:
    """
    Add 'discard' to ext2/3/4, xfs and btrfs entries backed by an SSD.

    An entry counts as SSD-backed when its device names one of the
    detected SSDs or is given by UUID. Comments, blank lines and
    untouched entries keep their original formatting.

    Returns:
        (new fstab text, list of 'device (mount point)' that changed)
    """
    out = []
    changed = []
    for line in fstab.splitlines():
        fields = line.split()
        if not fields or fields[0].startswith('#') or len(fields) < 4:
            out.append(line)
            continue

        device, target, fstype, options = fields[:4]
        on_ssd = device.startswith('UUID=') or any(ssd in device for ssd in ssds)
        if (
            TRIM_FILESYSTEMS.match(fstype)
            and on_ssd
            and 'discard' not in options
        ):
            options = 'defaults,discard' if options == 'defaults' else f"{options},discard"
            out.append(' '.join([device, target, fstype, options, *fields[4:]]))
            changed.append(f"{device} ({target})")
        else:
            out.append(line)

    text = '\n'.join(out)
    if fstab.endswith('\n'):
        text += '\n'
    return text, changed


class SsdOptimizer(Janitor):
    """Enable TRIM and tune the kernel for solid-state drives."""

    name = 'trim-ssd'
    title = 'Ubuntu SSD TRIM Optimizer'
    finished = 'SSD optimization process finished!'
    description = 'Optimize SSD performance and enable TRIM'

    def run(self) -> Dict[str, Any]:
        results = self.new_results(
            ssds=[],
            trim_supported=True,
            fstab_changed=[],
        )

        self.reporter.status("Starting SSD TRIM optimization process...")
        ssds = self.detect_ssds()
        if not ssds:
            self.reporter.warning("No SSD drives detected on this system")
            self.reporter.error("No SSDs detected, aborting SSD optimization")
            raise ModuleFailed("No SSDs detected")
        results['ssds'] = ssds

        self.reporter.success(f"Detected {len(ssds)} SSD drive(s):")
        for drive in ssds:
            info = self.runner.run(['lsblk', '-dn', '-o', 'NAME,SIZE,MODEL', drive])
            self.reporter.status(f"  {drive}: {info.stdout.strip() or 'Unknown'}")
        self.reporter.blank()

        results['trim_supported'] = self.check_trim_support(ssds)
        self.reporter.blank()
        self.check_trim_status(ssds)
        self.reporter.blank()
        self.show_ssd_health(ssds)
        self.reporter.blank()

        self.reporter.warning("This will optimize SSD settings and enable automatic TRIM")
        self.reporter.blank()
        if not self.reporter.confirm("Do you want to continue?"):
            raise OperationCancelled("SSD optimization cancelled by user")

        self.run_manual_trim(results)
        self.reporter.blank()
        self.enable_automatic_trim(results)
        self.reporter.blank()
        results['fstab_changed'] = self.configure_trim_mounts(ssds)
        self.reporter.blank()
        self.optimize_ssd_settings()

        self.reporter.success("SSD optimization completed successfully!")
        self.reporter.status("Automatic TRIM is now enabled and will run weekly")

        logger.info(f"SSD optimization complete: {results}")
        return results

    def detect_ssds(self) -> List[str]:
        self.reporter.status("Detecting SSD drives...")
        found: List[str] = []

        for device in sorted(self.sys_path('/sys/block').glob('sd*')):
            rotational = device / 'queue' / 'rotational'
            try:
                if rotational.read_text().strip() == '0':
                    found.append(f"/dev/{device.name}")
            except OSError:
                continue

        for device in sorted(self.sys_path('/dev').glob('nvme*n1')):
            found.append(f"/dev/{device.name}")

        for line in self.runner.run(['lsblk', '-dn', '-o', 'NAME,ROTA']).lines():
            fields = line.split()
            if len(fields) == 2 and fields[1] == '0':
                found.append(f"/dev/{fields[0]}")

        ssds = []
        for device in found:
            name = device.rsplit('/', 1)[-1]
            if name.startswith(VIRTUAL_DEVICES) or device in ssds:
                continue
            ssds.append(device)
        return ssds

    def check_trim_support(self, ssds: Sequence[str]) -> bool:
        self.reporter.status("Checking TRIM support...")
        supported = True
        for drive in ssds:
            self.reporter.status(f"Checking TRIM support for {drive}...")
            discard = self.runner.run(['lsblk', '-Dn', '-o', 'NAME,DISC-GRAN,DISC-MAX', drive])
            fields = discard.lines()[0].split() if discard.lines() else []
            if len(fields) >= 3 and fields[1] == '0B' and fields[2] == '0B':
                self.reporter.warning(f"  {drive}: TRIM may not be supported")
                supported = False
            else:
                self.reporter.success(f"  {drive}: TRIM supported")

            if self.runner.has('hdparm'):
                info = [
                    line.strip()
                    for line in self.runner.run(['hdparm', '-I', drive], sudo=True).lines()
                    if re.search(r'trim|discard', line, re.IGNORECASE)
                ]
                if info:
                    self.reporter.status(f"  {drive} TRIM info: {' '.join(info)}")

        if not supported:
            self.reporter.warning("Some drives may not support TRIM properly")
        return supported

    def read_mounts(self) -> List[Mount]:
        try:
            return parse_mounts(self.sys_path('/proc/mounts').read_text())
        except OSError:
            return []

    def trim_mounts(self, ssds: Sequence[str] = ()) -> List[Mount]:
        """Mounted ext/xfs/btrfs filesystems, optionally only those on the given SSDs."""
        return [
            m for m in self.read_mounts()
            if TRIM_FILESYSTEMS.match(m.fstype)
            and (not ssds or any(m.device.startswith(ssd) for ssd in ssds))
        ]

    def check_trim_status(self, ssds: Sequence[str]):
        self.reporter.status("Checking current TRIM configuration...")
        if self.runner.run(['systemctl', 'is-enabled', 'fstrim.timer']).ok:
            self.reporter.success("fstrim.timer is enabled")
        else:
            self.reporter.status("fstrim.timer is not enabled")

        if self.runner.run(['systemctl', 'is-active', 'fstrim.timer']).ok:
            self.reporter.success("fstrim.timer is active")
        else:
            self.reporter.status("fstrim.timer is not active")

        status = self.runner.run(['systemctl', 'status', 'fstrim.service']).lines()
        last_run = next(
            (line.strip() for line in status if 'Active:' in line or 'since' in line),
            'Never run',
        )
        self.reporter.status(f"Last fstrim run: {last_run}")

        self.reporter.status("Checking filesystem mount options for TRIM...")
        for mount in self.trim_mounts(ssds):
            if 'discard' in mount.options:
                self.reporter.success(f"  {mount.target}: TRIM enabled (discard option)")
            else:
                self.reporter.status(f"  {mount.target}: TRIM not enabled in mount options")

    def show_ssd_health(self, ssds: Sequence[str]):
        self.reporter.status("SSD health information:")
        smartctl = self.runner.has('smartctl')
        for drive in ssds:
            self.reporter.status(f"Drive: {drive}")
            info = self.runner.run(['lsblk', '-dn', '-o', 'NAME,SIZE,MODEL,SERIAL', drive])
            self.reporter.status(f"  Info: {info.stdout.strip() or 'Info unavailable'}")

            if not smartctl:
                self.reporter.status(
                    "  Install smartmontools for detailed health info: "
                    "sudo apt install smartmontools"
                )
                self.reporter.blank()
                continue

            health = 'Unknown'
            for line in self.runner.run(['smartctl', '-H', drive], sudo=True).lines():
                if 'SMART overall-health' in line:
                    health = line.split(':', 1)[1].strip()
                    break
            self.reporter.status(f"  Health: {health}")

            for line in self.runner.run(['smartctl', '-A', drive], sudo=True).lines():
                fields = line.split()
                if len(fields) > 3 and fields[1] in WEAR_ATTRIBUTES:
                    self.reporter.status(f"  Wear Level: {fields[3]}%")
                    break
            self.reporter.blank()

    def run_manual_trim(self, results: Dict[str, Any]):
        self.reporter.status("Running manual TRIM on all mounted filesystems...")
        with self.reporter.task("Running fstrim"):
            trimmed = self.runner.run(['fstrim', '-v', '-a'], sudo=True)
        if trimmed.ok:
            self.reporter.success("Manual TRIM completed successfully")
            for line in trimmed.lines():
                self.reporter.detail(f"  {line}")
            return

        self.reporter.warning("Manual TRIM failed or no filesystems support TRIM")
        for mount in self.trim_mounts():
            self.reporter.status(f"Attempting TRIM on {mount.target}...")
            if self.runner.run(['fstrim', '-v', mount.target], sudo=True).ok:
                self.reporter.success(f"  TRIM completed on {mount.target}")
            else:
                self.reporter.warning(f"  TRIM failed on {mount.target}")
                results['errors'].append(f"{self.name}: fstrim failed on {mount.target}")

    def enable_automatic_trim(self, results: Dict[str, Any]) -> bool:
        self.reporter.status("Enabling automatic TRIM scheduling...")
        for action, done in (('enable', 'enabled'), ('start', 'started')):
            if not self.attempt(
                ['systemctl', action, 'fstrim.timer'], sudo=True,
                success=f"fstrim.timer {done}",
                failure=f"Failed to {action} fstrim.timer",
                results=results,
            ):
                return False

        timers = self.runner.run(['systemctl', 'list-timers', 'fstrim.timer']).lines()
        schedule = next((line.strip() for line in timers if 'fstrim' in line), 'Schedule unknown')
        self.reporter.status(f"TRIM schedule: {schedule}")
        return True

    def configure_trim_mounts(self, ssds: Sequence[str]) -> List[str]:
        self.reporter.status("Configuring TRIM mount options...")
        if not self.sys_path(FSTAB_BACKUP).exists():
            if self.runner.run(['cp', FSTAB, FSTAB_BACKUP], sudo=True).ok:
                self.reporter.success("Created backup of /etc/fstab")
            else:
                self.reporter.warning("Failed to create fstab backup")
                return []

        self.reporter.warning("Adding 'discard' option to fstab can impact performance on some SSDs")
        self.reporter.warning("Weekly TRIM via systemd timer is often preferred")
        self.reporter.blank()
        if not self.reporter.confirm("Do you want to add 'discard' option to fstab?"):
            self.reporter.status("Skipped adding discard option to fstab")
            return []

        try:
            current = self.sys_path(FSTAB).read_text()
        except OSError as e:
            self.reporter.error(f"Cannot read /etc/fstab: {e}")
            return []

        updated, changed = add_discard_option(current, ssds)
        if not changed:
            self.reporter.status("No changes needed in /etc/fstab")
            return []

        for entry in changed:
            self.reporter.status(f"Added discard option to: {entry}")
        if self.runner.write_file(FSTAB, updated).ok:
            self.reporter.success("Updated /etc/fstab with TRIM options")
            self.reporter.warning("Changes will take effect after reboot")
            return changed

        self.reporter.error("Failed to update /etc/fstab")
        return []

    def optimize_ssd_settings(self):
        self.reporter.status("Optimizing SSD settings...")
        self.apply_sysctl(SSD_SYSCTL_PATH, SSD_SYSCTL, "SSD optimization settings")
        if self.install_file(SSD_UDEV_PATH, SSD_UDEV_RULES, "SSD I/O scheduler rules"):
            if self.runner.run(['udevadm', 'control', '--reload-rules'], sudo=True).ok:
                self.reporter.success("Udev rules reloaded")
