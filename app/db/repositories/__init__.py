from app.db.repositories.agents import AgentsRepository
from app.db.repositories.brand_kits import BrandKitsRepository, CanvasBrandKitsRepository
from app.db.repositories.canvases import ProjectCanvasesRepository
from app.db.repositories.products import ProductsRepository
from app.db.repositories.profiles import ProfilesRepository
from app.db.repositories.projects import ProjectsRepository
from app.db.repositories.shares import SharesRepository
