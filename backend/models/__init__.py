from models.company import Business, Client
from models.users import User
from models.job import Job, JobUser, JobPart
from models.product import Part, Favorite
from models.order import Order, OrderItem, OrderHistory
from models.cart import CartItem
from models.notification import Notification
from models.invitation import TradieInvitation
from models.session import UserSession, RateLimitHit
from models.log import Log
