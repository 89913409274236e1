"""Message keys, job keys and data types of the launch protocol."""

from __future__ import annotations

import enum

KEY_SUBMITJOB = "SubmitJob"
KEY_REMOVEJOB = "RemoveJob"
KEY_STARTJOB = "StartJob"
KEY_STOPJOB = "StopJob"
KEY_GETJOB = "GetJob"
KEY_GETJOBS = "GetJobs"
KEY_CHECKIN = "CheckIn"

JOBKEY_DEFAULTS = "__Defaults"
JOBKEY_LABEL = "Label"
JOBKEY_DISABLED = "Disabled"
JOBKEY_USERNAME = "UserName"
JOBKEY_GROUPNAME = "GroupName"
JOBKEY_TIMEOUT = "TimeOut"
JOBKEY_EXITTIMEOUT = "ExitTimeOut"
JOBKEY_INITGROUPS = "InitGroups"
JOBKEY_SOCKETS = "Sockets"
JOBKEY_MACHSERVICES = "MachServices"
JOBKEY_MACHSERVICELOOKUPPOLICIES = "MachServiceLookupPolicies"
JOBKEY_INETDCOMPATIBILITY = "inetdCompatibility"
JOBKEY_ENABLEGLOBBING = "EnableGlobbing"
JOBKEY_PROGRAMARGUMENTS = "ProgramArguments"
JOBKEY_PROGRAM = "Program"
JOBKEY_ONDEMAND = "OnDemand"
JOBKEY_KEEPALIVE = "KeepAlive"
JOBKEY_LIMITLOADTOHOSTS = "LimitLoadToHosts"
JOBKEY_LIMITLOADFROMHOSTS = "LimitLoadFromHosts"
JOBKEY_LIMITLOADTOSESSIONTYPE = "LimitLoadToSessionType"
JOBKEY_LIMITLOADTOHARDWARE = "LimitLoadToHardware"
JOBKEY_LIMITLOADFROMHARDWARE = "LimitLoadFromHardware"
JOBKEY_RUNATLOAD = "RunAtLoad"
JOBKEY_ROOTDIRECTORY = "RootDirectory"
JOBKEY_WORKINGDIRECTORY = "WorkingDirectory"
JOBKEY_ENVIRONMENTVARIABLES = "EnvironmentVariables"
JOBKEY_USERENVIRONMENTVARIABLES = "UserEnvironmentVariables"
JOBKEY_UMASK = "Umask"
JOBKEY_NICE = "Nice"
JOBKEY_HOPEFULLYEXITSFIRST = "HopefullyExitsFirst"
JOBKEY_HOPEFULLYEXITSLAST = "HopefullyExitsLast"
JOBKEY_LOWPRIORITYIO = "LowPriorityIO"
JOBKEY_SESSIONCREATE = "SessionCreate"
JOBKEY_STARTONMOUNT = "StartOnMount"
JOBKEY_SOFTRESOURCELIMITS = "SoftResourceLimits"
JOBKEY_HARDRESOURCELIMITS = "HardResourceLimits"
JOBKEY_STANDARDINPATH = "StandardInPath"
JOBKEY_STANDARDOUTPATH = "StandardOutPath"
JOBKEY_STANDARDERRORPATH = "StandardErrorPath"
JOBKEY_DEBUG = "Debug"
JOBKEY_WAITFORDEBUGGER = "WaitForDebugger"
JOBKEY_QUEUEDIRECTORIES = "QueueDirectories"
JOBKEY_WATCHPATHS = "WatchPaths"
JOBKEY_STARTINTERVAL = "StartInterval"
JOBKEY_STARTCALENDARINTERVAL = "StartCalendarInterval"
JOBKEY_BONJOURFDS = "BonjourFDs"
JOBKEY_LASTEXITSTATUS = "LastExitStatus"
JOBKEY_PID = "PID"
JOBKEY_THROTTLEINTERVAL = "ThrottleInterval"
JOBKEY_LAUNCHONLYONCE = "LaunchOnlyOnce"
JOBKEY_ABANDONPROCESSGROUP = "AbandonProcessGroup"
JOBKEY_IGNOREPROCESSGROUPATSHUTDOWN = "IgnoreProcessGroupAtShutdown"
JOBKEY_POLICIES = "Policies"
JOBKEY_ENABLETRANSACTIONS = "EnableTransactions"
JOBKEY_CFBUNDLEIDENTIFIER = "CFBundleIdentifier"
JOBKEY_PROCESSTYPE = "ProcessType"
JOBKEY_LAUNCHEVENTS = "LaunchEvents"

PROCESSTYPE_APP = "App"
PROCESSTYPE_STANDARD = "Standard"
PROCESSTYPE_BACKGROUND = "Background"
PROCESSTYPE_INTERACTIVE = "Interactive"
PROCESSTYPE_ADAPTIVE = "Adaptive"

JOBPOLICY_DENYCREATINGOTHERJOBS = "DenyCreatingOtherJobs"

JOBINETDCOMPATIBILITY_WAIT = "Wait"

MACH_RESETATCLOSE = "ResetAtClose"
MACH_HIDEUNTILCHECKIN = "HideUntilCheckIn"
MACH_DRAINMESSAGESONCRASH = "DrainMessagesOnCrash"
MACH_PINGEVENTUPDATES = "PingEventUpdates"

KEEPALIVE_SUCCESSFULEXIT = "SuccessfulExit"
KEEPALIVE_NETWORKSTATE = "NetworkState"
KEEPALIVE_PATHSTATE = "PathState"
KEEPALIVE_OTHERJOBACTIVE = "OtherJobActive"
KEEPALIVE_OTHERJOBENABLED = "OtherJobEnabled"
KEEPALIVE_AFTERINITIALDEMAND = "AfterInitialDemand"
KEEPALIVE_CRASHED = "Crashed"

CAL_MINUTE = "Minute"
CAL_HOUR = "Hour"
CAL_DAY = "Day"
CAL_WEEKDAY = "Weekday"
CAL_MONTH = "Month"

RESOURCELIMIT_CORE = "Core"
RESOURCELIMIT_CPU = "CPU"
RESOURCELIMIT_DATA = "Data"
RESOURCELIMIT_FSIZE = "FileSize"
RESOURCELIMIT_MEMLOCK = "MemoryLock"
RESOURCELIMIT_NOFILE = "NumberOfFiles"
RESOURCELIMIT_NPROC = "NumberOfProcesses"
RESOURCELIMIT_RSS = "ResidentSetSize"
RESOURCELIMIT_STACK = "Stack"

DISABLED_MACHINETYPE = "MachineType"
DISABLED_MODELNAME = "ModelName"

SOCKETKEY_TYPE = "SockType"
SOCKETKEY_PASSIVE = "SockPassive"
SOCKETKEY_BONJOUR = "Bonjour"
SOCKETKEY_SECUREWITHKEY = "SecureSocketWithKey"
SOCKETKEY_PATHNAME = "SockPathName"
SOCKETKEY_PATHMODE = "SockPathMode"
SOCKETKEY_NODENAME = "SockNodeName"
SOCKETKEY_SERVICENAME = "SockServiceName"
SOCKETKEY_FAMILY = "SockFamily"
SOCKETKEY_PROTOCOL = "SockProtocol"
SOCKETKEY_MULTICASTGROUP = "MulticastGroup"

_JOB_KEYS = (
    JOBKEY_DEFAULTS,
    JOBKEY_LABEL,
    JOBKEY_DISABLED,
    JOBKEY_USERNAME,
    JOBKEY_GROUPNAME,
    JOBKEY_TIMEOUT,
    JOBKEY_EXITTIMEOUT,
    JOBKEY_INITGROUPS,
    JOBKEY_SOCKETS,
    JOBKEY_MACHSERVICES,
    JOBKEY_MACHSERVICELOOKUPPOLICIES,
    JOBKEY_INETDCOMPATIBILITY,
    JOBKEY_ENABLEGLOBBING,
    JOBKEY_PROGRAMARGUMENTS,
    JOBKEY_PROGRAM,
    JOBKEY_ONDEMAND,
    JOBKEY_KEEPALIVE,
    JOBKEY_LIMITLOADTOHOSTS,
    JOBKEY_LIMITLOADFROMHOSTS,
    JOBKEY_LIMITLOADTOSESSIONTYPE,
    JOBKEY_LIMITLOADTOHARDWARE,
    JOBKEY_LIMITLOADFROMHARDWARE,
    JOBKEY_RUNATLOAD,
    JOBKEY_ROOTDIRECTORY,
    JOBKEY_WORKINGDIRECTORY,
    JOBKEY_ENVIRONMENTVARIABLES,
    JOBKEY_USERENVIRONMENTVARIABLES,
    JOBKEY_UMASK,
    JOBKEY_NICE,
    JOBKEY_HOPEFULLYEXITSFIRST,
    JOBKEY_HOPEFULLYEXITSLAST,
    JOBKEY_LOWPRIORITYIO,
    JOBKEY_SESSIONCREATE,
    JOBKEY_STARTONMOUNT,
    JOBKEY_SOFTRESOURCELIMITS,
    JOBKEY_HARDRESOURCELIMITS,
    JOBKEY_STANDARDINPATH,
    JOBKEY_STANDARDOUTPATH,
    JOBKEY_STANDARDERRORPATH,
    JOBKEY_DEBUG,
    JOBKEY_WAITFORDEBUGGER,
    JOBKEY_QUEUEDIRECTORIES,
    JOBKEY_WATCHPATHS,
    JOBKEY_STARTINTERVAL,
    JOBKEY_STARTCALENDARINTERVAL,
    JOBKEY_BONJOURFDS,
    JOBKEY_LASTEXITSTATUS,
    JOBKEY_PID,
    JOBKEY_THROTTLEINTERVAL,
    JOBKEY_LAUNCHONLYONCE,
    JOBKEY_ABANDONPROCESSGROUP,
    JOBKEY_IGNOREPROCESSGROUPATSHUTDOWN,
    JOBKEY_POLICIES,
    JOBKEY_ENABLETRANSACTIONS,
    JOBKEY_CFBUNDLEIDENTIFIER,
    JOBKEY_PROCESSTYPE,
    JOBKEY_LAUNCHEVENTS,
)


class LaunchDataType(enum.IntEnum):
    """Type tags of values carried in launch messages."""

    DICTIONARY = 1
    ARRAY = 2
    FD = 3
    INTEGER = 4
    REAL = 5
    BOOL = 6
    STRING = 7
    OPAQUE = 8
    ERRNO = 9
    MACHPORT = 10


def job_keys() -> tuple[str, ...]:
    """Return the top-level keys of a job description, in declaration order."""
    return _JOB_KEYS