"""
Contents of the configuration files the toolkit installs.
"""

HEADER = "# Ubuntu Optimize - {title}\n"


def journald_conf(max_use: str = '100M', retention: str = '1week') -> str:
    return HEADER.format(title='Journal Configuration') + f"""\
# Optimized for space and performance

[Journal]
Storage=persistent
SystemMaxUse={max_use}
SystemMaxFileSize=10M
MaxRetentionSec={retention}
SystemMaxFiles=10
Compress=yes
ForwardToSyslog=no
ForwardToWall=yes
RuntimeMaxUse=50M
RuntimeMaxFileSize=5M
RuntimeMaxFiles=5
RateLimitIntervalSec=30s
RateLimitBurst=1000
"""


RSYSLOG_LOGROTATE = """\
/var/log/syslog
/var/log/mail.info
/var/log/mail.warn
/var/log/mail.err
/var/log/mail.log
/var/log/daemon.log
/var/log/kern.log
/var/log/auth.log
/var/log/user.log
/var/log/lpr.log
/var/log/cron.log
/var/log/debug
/var/log/messages
{
    daily
    missingok
    rotate 7
    compress
    delaycompress
    notifempty
    create 640 syslog adm
    maxsize 10M
    postrotate
        /usr/lib/rsyslog/rsyslog-rotate
    endscript
}
"""

_APT_LOG_STANZA = """\
/var/log/apt/{name}.log {{
    daily
    missingok
    rotate 4
    compress
    delaycompress
    notifempty
    create 644 root root
    maxsize 5M
}}
"""

APT_LOGROTATE = (
    _APT_LOG_STANZA.format(name='history') + '\n' + _APT_LOG_STANZA.format(name='term')
)

KERNEL_LOG_SYSCTL = HEADER.format(title='Kernel log configuration') + """\
# Limit kernel log buffer size and rate
kernel.printk_ratelimit = 1
kernel.printk_ratelimit_burst = 5

# Reduce kernel log verbosity
kernel.printk = 3 4 1 3
"""


def log_cleanup_script(retention: str = '1week') -> str:
    return f"""\
#!/bin/bash
# Automatic log cleanup script
# Generated by ubuntu-optimize

journalctl --vacuum-time={retention} --quiet
find /var/log -type f -name "*.gz" -mtime +7 -delete 2>/dev/null || true
find /var/crash -type f -mtime +3 -delete 2>/dev/null || true
find /var/log -type f -name "*.log" -size +100M -exec truncate -s 50M {{}} \\; 2>/dev/null || true
"""


MEMORY_SYSCTL = HEADER.format(title='Memory optimization settings') + """\

# Virtual memory settings
vm.swappiness=10
vm.vfs_cache_pressure=50
vm.dirty_background_ratio=5
vm.dirty_ratio=10

# Memory overcommit settings
vm.overcommit_memory=1
vm.overcommit_ratio=80

# Kernel memory settings
kernel.shmmax=268435456
kernel.shmall=2097152

# Network memory settings
net.core.rmem_default=212992
net.core.rmem_max=16777216
net.core.wmem_default=212992
net.core.wmem_max=16777216
"""

SSD_SYSCTL = HEADER.format(title='SSD optimization settings') + """\

# Reduce swappiness for SSD longevity
vm.swappiness=1

# Dirty page writeback tuned for SSDs
vm.dirty_background_ratio=5
vm.dirty_ratio=10
vm.dirty_expire_centisecs=3000
vm.dirty_writeback_centisecs=500
"""

SSD_UDEV_RULES = HEADER.format(title='SSD I/O scheduler optimization') + """\

# SATA SSDs: mq-deadline
ACTION=="add|change", KERNEL=="sd[a-z]", ATTR{queue/rotational}=="0", ATTR{queue/scheduler}="mq-deadline"

# NVMe SSDs: no scheduler
ACTION=="add|change", KERNEL=="nvme[0-9]n[0-9]", ATTR{queue/scheduler}="none"
"""

# preload reads a GLib key file: sections are required and inline
# comments are not allowed.
PRELOAD_CONF = """\
# Preload configuration file
# Generated by ubuntu-optimize

[model]
cycle = 20
usecorrelation = true
minsize = 2000000
memtotal = -10
memfree = 50
memcached = 0

[system]
doscan = true
dopredict = true
autosave = 3600
mapprefix = /usr/;/lib;/var/cache/;!/
exeprefix = !/usr/sbin/;!/usr/local/sbin/;/usr/;!/
maxprocs = 30
sortstrategy = 3
"""

TRACKER_AUTOSTART = """\
[Desktop Entry]
Hidden=true
"""

TRACKER_CFG = """\
[General]
verbosity=0
initial-sleep=60
max-bytes=1048576

[Monitors]
enable-monitors=false

[Indexing]
enable-content-indexing=false
enable-thumbnails=false
crawling-interval=-1
"""
