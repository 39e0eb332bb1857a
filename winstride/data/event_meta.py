"""
Static metadata for the Windows event sources handled by the viewer:
event labels, logon types, failure codes, integrity levels and the
PowerShell keyword watch-list.
"""

# Security log
SECURITY_EVENT_LABELS = {
    4624: 'Logon',
    4625: 'Failed Logon',
    4634: 'Logoff',
    4647: 'User Logoff',
    4648: 'Run As Other User',
    4662: 'Object Access',
    4672: 'Admin Logon',
    4720: 'Account Created',
    4722: 'Account Enabled',
    4723: 'Password Change',
    4724: 'Password Reset',
    4725: 'Account Disabled',
    4726: 'Account Deleted',
    4728: 'Added to Group',
    4732: 'Added to Local Group',
    4733: 'Removed from Group',
    4738: 'Account Changed',
    4740: 'Account Locked Out',
    4756: 'Added to Universal Group',
    4767: 'Account Unlocked',
    4768: 'Kerberos TGT',
    4769: 'Kerberos Service Ticket',
    4776: 'NTLM Auth',
    4798: 'Group Lookup',
    4799: 'Local Group Lookup',
    5379: 'Credential Read',
}

LOGON_TYPE_LABELS = {
    2: 'Interactive',
    3: 'Network',
    4: 'Batch',
    5: 'Service',
    7: 'Unlock',
    8: 'NetCleartext',
    9: 'NewCreds',
    10: 'RDP',
    11: 'Cached',
}

# NTSTATUS codes for 4625 failed logon events
FAILURE_STATUS_LABELS = {
    '0xc0000064': 'User does not exist',
    '0xc000006a': 'Wrong password',
    '0xc0000234': 'Account locked out',
    '0xc0000072': 'Account disabled',
    '0xc000006f': 'Outside allowed hours',
    '0xc0000070': 'Unauthorized workstation',
    '0xc0000071': 'Password expired',
    '0xc0000193': 'Account expired',
    '0xc0000224': 'Password must change',
    '0xc0000225': 'Windows bug (not a risk)',
    '0xc000015b': 'Logon type not granted',
    '0xc000006d': 'Bad username or auth info',
    '0xc000006e': 'Account restriction',
    '0xc0000133': 'Clock out of sync with DC',
    '0xc0000413': 'Auth firewall / policy denied',
}

# ElevatedToken value meaning "Yes"
ELEVATED_TOKEN_YES = '%%1842'

# PowerShell operational log
POWERSHELL_EVENT_LABELS = {
    4103: 'Command Execution',
    4104: 'Script Block',
}

# Keywords worth highlighting in script blocks (MITRE ATT&CK T1059.001)
SUSPICIOUS_KEYWORDS = [
    'Invoke-Expression', 'IEX', 'Invoke-Command',
    'Net.WebClient', 'DownloadString', 'DownloadFile',
    'FromBase64String', 'EncodedCommand',
    'Invoke-Mimikatz', 'Invoke-WebRequest',
    'VirtualAlloc', 'CreateThread',
    'System.Runtime.InteropServices',
    'Add-Type', 'Reflection.Assembly',
    'Set-MpPreference', 'DisableRealtimeMonitoring',
    'AMSI', 'Bypass',
]

# Sysmon
SYSMON_PROCESS_CREATE = 1
SYSMON_NETWORK_CONNECT = 3
SYSMON_FILE_CREATE = 11

SYSMON_EVENT_LABELS = {
    SYSMON_PROCESS_CREATE: 'Process Create',
    SYSMON_NETWORK_CONNECT: 'Network Connect',
    SYSMON_FILE_CREATE: 'File Create',
}

# Ordered lowest to highest
INTEGRITY_LEVELS = ['Low', 'Medium', 'High', 'System']
