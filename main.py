import argparse
import logging
import time

import taichi as ti

from snowsim.config.base_config import Config, load_config
from snowsim.errors import UnstableSimulationError
from snowsim.logging_config import setup_logging
from snowsim.snowenv import SnowEnv
from snowsim.visualization.recorder import Recorder
from snowsim.visualization.Visualizer import Visualizer

logger = logging.getLogger("snowsim.main")

ARCHS = {'cpu': ti.cpu, 'gpu': ti.gpu, 'cuda': ti.cuda, 'vulkan': ti.vulkan}


def parse_args():
    parser = argparse.ArgumentParser(description='2D MLS-MPM Snow Simulation')
    parser.add_argument('--config', type=str, default=None,
                        help='YAML config file (defaults to the built-in three-blob scene)')
    parser.add_argument('--frames', type=int, default=600,
                        help='Number of frames to simulate')
    parser.add_argument('--fps', type=int, default=60,
                        help='Frames per second of simulated time')
    parser.add_argument('--arch', choices=sorted(ARCHS), default='cpu',
                        help='Taichi backend')
    parser.add_argument('--record', type=str, default=None,
                        help='Write the run to this animation file (e.g. snow.gif)')
    parser.add_argument('--headless', action='store_true',
                        help='Do not open a window')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], default='INFO',
                        help='Logging verbosity')
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    setup_logging(getattr(logging, args.log_level))

    cfg = load_config(args.config) if args.config else Config()
    ti.init(arch=ARCHS[args.arch], default_fp=cfg.ti_dtype, fast_math=False)

    show = not args.headless
    visualizer = Visualizer(show_gui=show) if (show or args.record) else None
    recorder = Recorder(args.record, fps=args.fps) if args.record else None
    env = SnowEnv(cfg, renderer=visualizer)

    frame_dt = 1.0 / args.fps
    start_time = time.time()
    logger.info("Simulating %d frames at %d fps (%d substeps per frame)",
                args.frames, args.fps, env.n_substeps(min(frame_dt, cfg.max_frame_dt)))

    try:
        for _ in range(args.frames):
            if visualizer is not None and show and not visualizer.running:
                break
            env.advance_frame(frame_dt)
            image = env.render()
            if recorder is not None:
                recorder.add_frame(image)

            if env.frame % 100 == 0:
                elapsed = time.time() - start_time
                logger.info("Frame %d: %.2f FPS | t=%.2fs", env.frame, env.frame / elapsed, env.time)
    except UnstableSimulationError as e:
        logger.error("Simulation stopped: %s", e)
    except KeyboardInterrupt:
        logger.info("Simulation stopped by user")
    finally:
        if recorder is not None and recorder.frames:
            recorder.save()
            logger.info("Saved %d frames to %s", len(recorder.frames), args.record)
