from .database import execute_query, get_db_connection, init_db, transaction
from .gym import Gym, ResolvedGymConfig, SmtpSettings, resolve_gym_config, resolve_smtp_settings
from .membership_plan import MembershipPlan
from .member import Member
from .check_in import CheckIn, check_in_member, current_occupancy, find_eligible_member, occupancy_snapshot, record_check_in
from .announcement import Announcement
